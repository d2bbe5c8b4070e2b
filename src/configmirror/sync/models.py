"""The types the sync engine passes around

Nothing in here is persisted. Each event (or each file in a manual pass) builds these fresh from what the backends currently hold.

:Module: configmirror.sync.models
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from configmirror.registry.registry import Folder


class Backend(Enum):
    """The three places a file can live."""

    LOCAL = "local"
    OBJECT_STORE = "object-store"
    VCS = "vcs"


class SyncAction(Enum):
    """What to do to the destination."""

    SKIP = "Skip"
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"


class ResultStatus(Enum):
    """How a file's sync turned out."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class Provenance:
    """Where an object's current content came from. Any of the fields can be missing."""

    def __init__(self, synced_from: Optional[str] = None, sync_direction: Optional[str] = None, synced_at: Optional[datetime] = None):
        self.synced_from = synced_from
        self.sync_direction = sync_direction
        self.synced_at = synced_at

    def __repr__(self) -> str:
        return f"Provenance(synced_from={self.synced_from!r}, sync_direction={self.sync_direction!r}, synced_at={self.synced_at!r})"


class SyncState:
    """One side of a decision: does the file exist there, its fingerprint, and the provenance (object store only)."""

    def __init__(self, exists: bool, content_hash: Optional[str] = None, provenance: Optional[Provenance] = None, version: Optional[str] = None):
        self.exists = exists
        self.content_hash = content_hash
        self.provenance = provenance
        # The version identifier to condition writes on (the blob SHA on the VCS side):
        self.version = version

    @classmethod
    def missing(cls) -> "SyncState":
        """A side where the file does not exist."""
        return cls(False)

    def __repr__(self) -> str:
        return f"SyncState(exists={self.exists}, content_hash={self.content_hash!r}, version={self.version!r}, provenance={self.provenance!r})"


class Decision:
    """The decision engine's answer, with the reason for the logs."""

    def __init__(self, action: SyncAction, reason: str):
        self.action = action
        self.reason = reason

    def __repr__(self) -> str:
        return f"Decision({self.action.value}: {self.reason})"


class SyncRecord:
    """Everything the executor needs to apply a decision for one file."""

    def __init__(
        self,
        environment: str,
        folder: Folder,
        file_name: str,
        source_backend: Backend,
        destination_backend: Backend,
        content: Optional[bytes] = None,
        content_hash: Optional[str] = None,
        provenance: Optional[Provenance] = None,
        destination_version: Optional[str] = None,
        copied_from: Optional[str] = None,
        base_commit: Optional[str] = None,
    ):
        self.environment = environment
        self.folder = folder
        self.file_name = file_name
        self.source_backend = source_backend
        self.destination_backend = destination_backend
        self.content = content
        self.content_hash = content_hash
        self.provenance = provenance
        self.destination_version = destination_version
        # Set when production content was promoted from another environment's copy:
        self.copied_from = copied_from
        # The VCS commit that the destination was read at (batch commits are parented on it):
        self.base_commit = base_commit

    @property
    def identity(self) -> str:
        """The `folder/file (environment)` name used in logs and summaries."""
        return f"{self.folder.name}/{self.file_name} ({self.environment})"


class SyncResult:
    """The outcome for one file."""

    def __init__(self, identity: str, status: ResultStatus, action: SyncAction, reason: str):
        self.identity = identity
        self.status = status
        self.action = action
        self.reason = reason

    def __repr__(self) -> str:
        return f"SyncResult({self.identity}: {self.status.value}/{self.action.value} - {self.reason})"
