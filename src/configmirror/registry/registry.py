"""The folder registry

The registry (`folders.json`) describes which folders are mirrored, where each one lives locally and in S3 per environment, and which
files each one tracks. Sync passes treat it as read-only; the CLI mutates it with `add_folder`/`add_file`/`migrate`.

:Module: configmirror.registry.registry
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
import json
from collections import Counter
from typing import Any, Dict, List, Optional

from configmirror.backends.local import LocalBackend
from configmirror.registry.schemas import RegistrySchema, TrackedFileSchema
from configmirror.utils.config_schema import ENVIRONMENTS
from configmirror.utils.logging import LOGGER


class RegistryError(Exception):
    """Raised if the registry file can't be read or parsed."""


class RegistryValidationError(Exception):
    """Raised if the registry is structurally invalid. The run must not proceed. `errors` holds the list of problems."""

    def __init__(self, errors: List[str]):
        super().__init__(errors)
        self.errors = errors


class FolderExistsError(Exception):
    """Raised when adding a folder whose name is already taken."""


class FolderNotFoundError(Exception):
    """Raised when the named folder isn't in the registry."""


class FileExistsInFolderError(Exception):
    """Raised when adding a file that the folder already tracks."""


class TrackedFile:
    """A file tracked by a folder."""

    def __init__(self, name: str, description: str, folder: "Folder"):
        self.name = name
        self.description = description
        self.folder = folder

    @property
    def identity(self) -> str:
        """The `folder/file` identity, unique across the registry."""
        return f"{self.folder.name}/{self.name}"


class Folder:
    """Wraps a folder entry of the registry document. Changes go straight into the document so that `save()` picks them up."""

    def __init__(self, raw: Dict[str, Any]):
        self._raw = raw

    @property
    def name(self) -> str:
        """The unique folder name."""
        return self._raw["name"]

    @property
    def description(self) -> str:
        """Free-form description."""
        return self._raw.get("description", "")

    @property
    def files(self) -> List[TrackedFile]:
        """The tracked files, in registry order."""
        return [TrackedFile(file["name"], file.get("description", ""), self) for file in self._raw.get("files", [])]

    @property
    def is_legacy(self) -> bool:
        """True if this still uses the unified `local_path`/`s3_prefix` layout."""
        return "local_path" in self._raw or "s3_prefix" in self._raw

    def has_file(self, file_name: str) -> bool:
        """True if the folder tracks the file."""
        return any(file.get("name") == file_name for file in self._raw.get("files", []))

    def _resolve(self, field: str, environment: str) -> Optional[str]:
        """Per-environment value first, then the legacy `{field}/{environment}`. Trailing slashes are dropped."""
        if environment not in ENVIRONMENTS:
            return None

        value = self._raw.get(f"{field}_{environment}")
        if value:
            return value.rstrip("/")

        legacy = self._raw.get(field)
        if legacy:
            return f"{legacy.rstrip('/')}/{environment}"

        return None

    def local_path_for(self, environment: str) -> Optional[str]:
        """The local directory for the environment, or None if it isn't configured."""
        return self._resolve("local_path", environment)

    def s3_prefix_for(self, environment: str) -> Optional[str]:
        """The S3 prefix for the environment, or None if it isn't configured."""
        return self._resolve("s3_prefix", environment)

    def s3_key_for(self, environment: str, file_name: str) -> Optional[str]:
        """The full S3 key of the file for the environment."""
        prefix = self.s3_prefix_for(environment)
        return f"{prefix}/{file_name}" if prefix else None

    def local_file_for(self, environment: str, file_name: str) -> Optional[str]:
        """The path of the file relative to the local base path. This is also its path in the repository."""
        local_path = self.local_path_for(environment)
        return f"{local_path}/{file_name}" if local_path else None


class FolderRegistry:
    """The loaded registry document plus the operations on it."""

    def __init__(self, document: Dict[str, Any], path: Optional[str] = None):
        self.document = document
        self.path = path

    @classmethod
    def load(cls, path: str) -> "FolderRegistry":
        """Reads and schema-validates the registry file. This does not run the cross-folder checks: call `validate()` for that."""
        LOGGER.debug(f"[📒] Loading the folder registry from {path}...")
        try:
            with open(path, "r", encoding="utf-8") as file:
                document = json.load(file)

        except (OSError, ValueError) as exc:
            LOGGER.error(f"[💥] Unable to load the folder registry from {path}: {exc}")
            raise RegistryError(f"Unable to load the folder registry from {path}: {exc}") from exc

        errors = RegistrySchema().validate(document)
        if errors:
            LOGGER.error(f"[💥] The folder registry at {path} is malformed: {errors}")
            raise RegistryValidationError([f"Schema error: {errors}"])

        return cls(document, path=path)

    def save(self, path: Optional[str] = None) -> None:
        """Writes the registry back out as indented JSON."""
        path = path or self.path
        with open(path, "w", encoding="utf-8") as file:
            json.dump(self.document, file, indent=2, ensure_ascii=False)
            file.write("\n")

        LOGGER.debug(f"[💾] Saved the folder registry to {path}.")

    @property
    def folders(self) -> List[Folder]:
        """All the folders, in registry order."""
        return [Folder(raw) for raw in self.document.get("folders", [])]

    def get_folder(self, name: str) -> Optional[Folder]:
        """The folder with the name, or None."""
        for folder in self.folders:
            if folder.name == name:
                return folder

        return None

    def problems(self) -> List[str]:
        """Returns every structural problem with the registry. An empty list means it's valid."""
        errors = []
        folders = self.folders

        duplicate_names = sorted(name for name, count in Counter(folder.name for folder in folders).items() if count > 1)
        if duplicate_names:
            errors.append(f"Duplicate folder names: {', '.join(duplicate_names)}")

        prefixes = [prefix for folder in folders for prefix in (folder.s3_prefix_for(env) for env in ENVIRONMENTS) if prefix]
        duplicate_prefixes = sorted(prefix for prefix, count in Counter(prefixes).items() if count > 1)
        if duplicate_prefixes:
            errors.append(f"Duplicate S3 prefixes: {', '.join(duplicate_prefixes)}")

        identities = [file.identity for folder in folders for file in folder.files]
        duplicate_files = sorted(identity for identity, count in Counter(identities).items() if count > 1)
        if duplicate_files:
            errors.append(f"Duplicate files: {', '.join(duplicate_files)}")

        for folder in folders:
            for environment in ENVIRONMENTS:
                if folder.s3_prefix_for(environment) and not folder.local_path_for(environment):
                    errors.append(f"Folder {folder.name} has an S3 prefix for {environment} but no local path for it")

        return errors

    def validate(self) -> None:
        """Raises RegistryValidationError if there are any problems."""
        errors = self.problems()
        if errors:
            for error in errors:
                LOGGER.error(f"[💥] Registry problem: {error}")

            raise RegistryValidationError(errors)

        LOGGER.debug("[🆗] The folder registry is valid.")

    def add_folder(self, name: str, description: str, s3_prefix: str, local_root: str = "app-config") -> Folder:
        """Adds a folder with the per-environment layout: `{local_root}/{name}/{env}` locally and `{s3_prefix}/{env}` in S3."""
        if self.get_folder(name):
            raise FolderExistsError(f"Folder {name} already exists")

        s3_prefix = s3_prefix.strip("/")
        raw = {"name": name, "description": description}
        for environment in ENVIRONMENTS:
            raw[f"local_path_{environment}"] = f"{local_root.rstrip('/')}/{name}/{environment}"
            raw[f"s3_prefix_{environment}"] = f"{s3_prefix}/{environment}"

        raw["files"] = []
        self.document.setdefault("folders", []).append(raw)
        LOGGER.info(f"[📁] Added folder: {name}")
        return Folder(raw)

    def add_file(self, folder_name: str, file_name: str, description: str = "") -> TrackedFile:
        """Starts tracking the file in the folder. Raises a marshmallow ValidationError if the file name isn't a plain .json name."""
        TrackedFileSchema().load({"name": file_name, "description": description})

        for raw in self.document.get("folders", []):
            if raw["name"] == folder_name:
                folder = Folder(raw)
                if folder.has_file(file_name):
                    raise FileExistsInFolderError(f"File {file_name} already exists in folder {folder_name}")

                raw.setdefault("files", []).append({"name": file_name, "description": description})
                LOGGER.info(f"[📄] Added file: {file_name} to folder: {folder_name}")
                return TrackedFile(file_name, description, folder)

        raise FolderNotFoundError(f"Folder {folder_name} is not in the registry")

    def list_files(self, folder_name: str) -> List[TrackedFile]:
        """The files the folder tracks."""
        folder = self.get_folder(folder_name)
        if not folder:
            raise FolderNotFoundError(f"Folder {folder_name} is not in the registry")

        return folder.files

    def migrate(self) -> List[str]:
        """Rewrites legacy folders into the per-environment fields. The resolved paths don't change, so no files need to move."""
        migrated = []
        for raw in self.document.get("folders", []):
            folder = Folder(raw)
            if not folder.is_legacy:
                continue

            for environment in ENVIRONMENTS:
                for field in ("local_path", "s3_prefix"):
                    resolved = folder._resolve(field, environment)  # pylint: disable=protected-access
                    if resolved:
                        raw[f"{field}_{environment}"] = resolved

            raw.pop("local_path", None)
            raw.pop("s3_prefix", None)
            migrated.append(folder.name)
            LOGGER.info(f"[🔄] Migrated folder: {folder.name}")

        return migrated

    def create_structure(self, local: LocalBackend) -> List[str]:
        """Creates every folder's local directory for each environment. Returns the directories that were created."""
        paths = []
        for folder in self.folders:
            for environment in ENVIRONMENTS:
                local_path = folder.local_path_for(environment)
                if local_path and local_path not in paths:
                    paths.append(local_path)

        return local.make_directories(paths)
