"""
Detection of the local operating system and the feed's platform keys.
"""

import platform

# Download keys in order of preference for each (system, machine) pair.
_PLATFORM_PREFERENCES = {
    ("darwin", "arm64"): ["mac_arm", "mac"],
    ("darwin", "aarch64"): ["mac_arm", "mac"],
    ("darwin", "x86_64"): ["mac"],
    ("linux", "x86_64"): ["linux"],
    ("linux", "amd64"): ["linux"],
    ("linux", "aarch64"): ["linux_arm", "linux"],
    ("windows", "amd64"): ["windows"],
    ("windows", "x86_64"): ["windows"],
    ("windows", "arm64"): ["windows_arm", "windows"],
}


def current_system() -> str:
    return platform.system().lower()


def is_macos() -> bool:
    return current_system() == "darwin"


def platform_keys(system: str | None = None, machine: str | None = None) -> list[str]:
    """
    Returns the download keys usable on a platform, most preferred first.

    Args:
        system: `platform.system()` value; defaults to the running system.
        machine: `platform.machine()` value; defaults to the running machine.
    """
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()
    keys = _PLATFORM_PREFERENCES.get((system, machine))
    if keys:
        return list(keys)
    if system == "darwin":
        return ["mac"]
    return [system]
