"""
Provides methods for checking the integrity of downloaded archives.
"""

import asyncio
import hashlib
import logging
from pathlib import Path

from astudios.exceptions import VerificationError

log = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 1024 * 1024


class FileIntegrityChecker:
    """A collection of static methods for validating downloaded files."""

    @staticmethod
    def compute_checksum(filepath: Path, algorithm: str = "sha256") -> str:
        """
        Hashes a file in fixed-size chunks.

        Args:
            filepath: Path to the file.
            algorithm: Any algorithm name accepted by `hashlib.new`.

        Returns:
            The lowercase hex digest.
        """
        digest = hashlib.new(algorithm)
        with open(filepath, "rb") as f:
            for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
                digest.update(chunk)
        return digest.hexdigest()

    @staticmethod
    async def verify(
        filepath: Path, expected: str, algorithm: str = "sha256"
    ) -> None:
        """
        Recomputes a file's checksum off the event loop and compares it.

        Raises:
            VerificationError: If the digest does not match `expected`.
        """
        log.debug(f"Verifying {algorithm} checksum of '{filepath.name}'...")
        actual = await asyncio.to_thread(
            FileIntegrityChecker.compute_checksum, filepath, algorithm
        )
        if actual != expected.lower():
            raise VerificationError(filepath, expected.lower(), actual)
        log.debug(f"Checksum of '{filepath.name}' verified.")
