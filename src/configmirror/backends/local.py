"""The local filesystem backend adapter

Paths are relative to a base path. On Lambda that is `/tmp`, since it's the only writable place.

:Module: configmirror.backends.local
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
import os
from typing import List

from configmirror.backends.errors import FatalBackendError, NotFoundError
from configmirror.utils.logging import LOGGER


class LocalBackend:
    """Reads and writes files under `base_path`."""

    def __init__(self, base_path: str):
        self.base_path = base_path

    def full_path(self, relative_path: str) -> str:
        """The absolute-ish path on disk for the relative path."""
        return os.path.join(self.base_path, relative_path)

    def read(self, relative_path: str) -> bytes:
        """Reads the file. Raises NotFoundError if it's not there."""
        try:
            with open(self.full_path(relative_path), "rb") as file:
                return file.read()

        except FileNotFoundError as exc:
            raise NotFoundError(f"{relative_path} does not exist locally") from exc

        except OSError as exc:
            raise FatalBackendError(f"Unable to read {relative_path}: {exc}") from exc

    def write(self, relative_path: str, content: bytes) -> None:
        """Writes the file, making the parent directories as needed."""
        path = self.full_path(relative_path)
        LOGGER.debug(f"[💾] Writing local file: {path}...")
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as file:
                file.write(content)

        except OSError as exc:
            raise FatalBackendError(f"Unable to write {relative_path}: {exc}") from exc

    def delete(self, relative_path: str) -> None:
        """Removes the file. Removing a file that's already gone is fine."""
        path = self.full_path(relative_path)
        LOGGER.debug(f"[🗑️] Deleting local file: {path}...")
        try:
            os.remove(path)

        except FileNotFoundError:
            LOGGER.debug(f"[🤷] Local file: {path} was already gone.")

        except OSError as exc:
            raise FatalBackendError(f"Unable to delete {relative_path}: {exc}") from exc

    def exists(self, relative_path: str) -> bool:
        """True if the path is a file."""
        return os.path.isfile(self.full_path(relative_path))

    def make_directories(self, relative_paths: List[str]) -> List[str]:
        """Creates the directories and returns the ones that didn't already exist."""
        created = []
        for relative_path in relative_paths:
            path = self.full_path(relative_path)
            if os.path.isdir(path):
                LOGGER.debug(f"[ℹ️] Directory already exists: {relative_path}")
                continue

            os.makedirs(path, exist_ok=True)
            created.append(relative_path)
            LOGGER.info(f"[📁] Created directory: {relative_path}")

        return created
