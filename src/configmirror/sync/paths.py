"""The path resolver

Maps an S3 key onto the (folder, file, environment) it mirrors, or says that the key isn't monitored. Keys look like
`{prefix base}/{environment}/{file}.json`.

:Module: configmirror.sync.paths
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from typing import Optional
from urllib.parse import unquote_plus

from configmirror.registry.registry import Folder, FolderRegistry
from configmirror.registry.schemas import MONITORED_SUFFIX
from configmirror.utils.config_schema import ENVIRONMENTS
from configmirror.utils.logging import LOGGER


class PathInfo:
    """The result of resolving a key. Only `monitored` is set when the key isn't monitored."""

    def __init__(
        self,
        monitored: bool,
        environment: Optional[str] = None,
        prefix: Optional[str] = None,
        folder: Optional[Folder] = None,
        file_name: Optional[str] = None,
    ):
        self.monitored = monitored
        self.environment = environment
        self.prefix = prefix
        self.folder = folder
        self.file_name = file_name

    @classmethod
    def not_monitored(cls) -> "PathInfo":
        """A rejected key."""
        return cls(False)

    def __repr__(self) -> str:
        if not self.monitored:
            return "PathInfo(monitored=False)"

        return f"PathInfo(monitored=True, environment={self.environment!r}, prefix={self.prefix!r}, folder={self.folder.name!r}, file_name={self.file_name!r})"


def normalize_key(raw_key: str) -> str:
    """S3 event notifications URL-encode the key (with `+` for spaces)."""
    return unquote_plus(raw_key)


def _prefix_base(prefix: Optional[str]) -> Optional[str]:
    return prefix.split("/")[0] if prefix else None


def resolve_key(key: str, registry: FolderRegistry) -> PathInfo:
    """Resolves the (already normalized) key against the registry."""
    parts = key.split("/")

    # Tracked files sit directly under the environment, so anything nested deeper can't be one of them either:
    if len(parts) != 3 or not parts[-1].endswith(MONITORED_SUFFIX):
        LOGGER.debug(f"[⏭️] {key} is not a monitored path shape.")
        return PathInfo.not_monitored()

    base, environment, file_name = parts[0], parts[1], parts[2]

    # First folder whose staging or production prefix base matches wins:
    folder = None
    for candidate in registry.folders:
        if base in {_prefix_base(candidate.s3_prefix_for(env)) for env in ENVIRONMENTS}:
            folder = candidate
            break

    if not folder:
        LOGGER.debug(f"[⏭️] No folder is configured for the prefix base: {base}.")
        return PathInfo.not_monitored()

    configured_prefix = folder.s3_prefix_for(environment)
    if not configured_prefix:
        LOGGER.debug(f"[⏭️] Folder: {folder.name} has no prefix for the environment: {environment}.")
        return PathInfo.not_monitored()

    if not folder.has_file(file_name):
        LOGGER.debug(f"[⏭️] {file_name} is not tracked by folder: {folder.name}.")
        return PathInfo.not_monitored()

    # The configured prefix has to be exactly `{base}/{environment}`, otherwise the folder only matched on its base:
    if configured_prefix != f"{base}/{environment}":
        LOGGER.debug(f"[⏭️] {key} matched folder: {folder.name} by its base, but the folder's prefix is: {configured_prefix}.")
        return PathInfo.not_monitored()

    return PathInfo(True, environment=environment, prefix=f"{configured_prefix}/", folder=folder, file_name=file_name)
