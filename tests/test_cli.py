"""
Tests for the command-line interface, run against a temporary configuration.
"""

import configparser
import sys

import pytest
from typer.testing import CliRunner

from astudios import __version__
from astudios.cli import app as cli_app
from astudios.storage.cache import CatalogCache

from conftest import make_installed

runner = CliRunner()


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Points the CLI at a config whose directories all live under tmp_path."""
    settings = {
        "install_root": tmp_path / "versions",
        "alias_path": tmp_path / "bin" / "android-studio",
        "cache_dir": tmp_path / "cache",
        "downloads_dir": tmp_path / "downloads",
        "feed_url": "http://127.0.0.1:9/releases.xml",
        "backend": "native",
    }
    config_file = tmp_path / "config.ini"
    parser = configparser.ConfigParser(interpolation=None)
    parser["DEFAULT"] = {key: str(value) for key, value in settings.items()}
    with open(config_file, "w", encoding="utf-8") as f:
        parser.write(f)
    monkeypatch.setattr(cli_app, "CONFIG_FILE", config_file)
    return settings


def test_version():
    result = runner.invoke(cli_app.app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_installed_and_which_with_nothing_installed(env):
    result = runner.invoke(cli_app.app, ["installed"])
    assert result.exit_code == 0

    result = runner.invoke(cli_app.app, ["which"])
    assert result.exit_code == 0
    assert "No version is active" in result.output


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks")
def test_use_then_which(env):
    make_installed(env["install_root"], "2024.1.1")
    make_installed(env["install_root"], "2024.2.1")

    result = runner.invoke(cli_app.app, ["use", "2024.2.1"])
    assert result.exit_code == 0, result.output
    assert env["alias_path"].resolve() == (env["install_root"] / "2024.2.1").resolve()

    result = runner.invoke(cli_app.app, ["which"])
    assert "2024.2.1" in result.output


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks")
def test_use_resolves_codename_from_cached_catalog(env, scenario_catalog):
    make_installed(env["install_root"], "2024.1.1")
    make_installed(env["install_root"], "2024.2.1")
    CatalogCache(env["cache_dir"]).set(scenario_catalog)

    result = runner.invoke(cli_app.app, ["use", "ladybug"])

    assert result.exit_code == 0, result.output
    assert env["alias_path"].resolve() == (env["install_root"] / "2024.2.1").resolve()


def test_list_from_fresh_cache(env, scenario_catalog):
    CatalogCache(env["cache_dir"]).set(scenario_catalog)

    result = runner.invoke(cli_app.app, ["list", "--beta"])

    assert result.exit_code == 0, result.output
    assert "2024.2.1" in result.output
    assert "2024.1.1" not in result.output


def test_install_requires_exactly_one_version(env):
    result = runner.invoke(cli_app.app, ["install", "2024.1.1", "--latest"])
    assert result.exit_code == 1
    assert "exactly one" in result.output


def test_uninstall_with_force(env):
    make_installed(env["install_root"], "2024.1.1")

    result = runner.invoke(cli_app.app, ["uninstall", "2024.1.1", "--force"])

    assert result.exit_code == 0, result.output
    assert not (env["install_root"] / "2024.1.1").exists()


def test_clean_dry_run_then_clean(env):
    env["downloads_dir"].mkdir()
    archive = env["downloads_dir"] / "android-studio-2024.1.1-linux.tar.gz"
    archive.write_bytes(b"x" * 10)

    result = runner.invoke(cli_app.app, ["clean", "--dry-run"])
    assert result.exit_code == 0
    assert "Would remove 1 item" in result.output
    assert archive.exists()

    result = runner.invoke(cli_app.app, ["clean"])
    assert result.exit_code == 0
    assert not archive.exists()


def test_init_config(tmp_path, monkeypatch):
    config_file = tmp_path / "astudios" / "config.ini"
    monkeypatch.setattr(cli_app, "CONFIG_FILE", config_file)

    result = runner.invoke(cli_app.app, ["--init-config"])

    assert result.exit_code == 0
    assert config_file.is_file()
