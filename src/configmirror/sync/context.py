"""The explicit sync configuration and the bundle of backends a run works against

`SyncConfig` is built once by an entrypoint (CLI or Lambda) and passed down. Nothing below the entrypoints reads environment variables.

:Module: configmirror.sync.context
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from datetime import timedelta
from typing import Any, Dict, Optional

import boto3

from configmirror.backends.github import GitHubBackend
from configmirror.backends.local import LocalBackend
from configmirror.backends.s3 import S3Backend
from configmirror.registry.registry import FolderRegistry
from configmirror.utils.logging import LOGGER


class SyncConfig:
    """Everything a sync run needs to know about where things live."""

    def __init__(
        self,
        bucket: str,
        region: str,
        repo_owner: str,
        repo_name: str,
        branches: Optional[Dict[str, str]] = None,
        registry_path: str = "config/folders.json",
        local_base_path: str = ".",
        suppression_window_seconds: int = 300,
        sync_source: str = "github",
        github_api_url: str = "https://api.github.com",
        commit_sha: str = "unknown",
    ):
        self.bucket = bucket
        self.region = region
        self.repo_owner = repo_owner
        self.repo_name = repo_name
        self.branches = branches or {"staging": "staging", "production": "main"}
        self.registry_path = registry_path
        self.local_base_path = local_base_path
        self.suppression_window = timedelta(seconds=suppression_window_seconds)
        self.sync_source = sync_source
        self.github_api_url = github_api_url
        self.commit_sha = commit_sha or "unknown"

    @classmethod
    def from_configuration(cls, mirror_section: Dict[str, Any], **overrides) -> "SyncConfig":
        """Builds it from the schema-loaded `MIRROR` section (snake_case keys). Keyword overrides win over the configuration."""
        values = {
            "bucket": mirror_section["bucket"],
            "region": mirror_section["region"],
            "repo_owner": mirror_section["repo_owner"],
            "repo_name": mirror_section["repo_name"],
            "branches": mirror_section.get("branches"),
            "registry_path": mirror_section.get("registry_path", "config/folders.json"),
            "local_base_path": mirror_section.get("local_base_path", "."),
            "suppression_window_seconds": mirror_section.get("suppression_window_seconds", 300),
            "sync_source": mirror_section.get("sync_source", "github"),
            "github_api_url": mirror_section.get("github_api_url", "https://api.github.com"),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    def branch_for(self, environment: str) -> str:
        """The branch that receives the environment's files."""
        return self.branches[environment]

    def synced_from(self, environment: str) -> str:
        """The synced-from tag for writes to S3, e.g. `github-staging`."""
        return f"{self.sync_source}-{environment}"

    @property
    def sync_direction(self) -> str:
        """The sync-direction tag for writes to S3, e.g. `github-to-s3`."""
        return f"{self.sync_source}-to-s3"


class SyncContext:
    """The configuration, the registry, and the three backends. Tests build this with fakes."""

    def __init__(self, config: SyncConfig, registry: FolderRegistry, object_store: S3Backend, vcs: Optional[GitHubBackend], local: LocalBackend):
        self.config = config
        self.registry = registry
        self.object_store = object_store
        self.vcs = vcs
        self.local = local


def build_sync_context(config: SyncConfig, github_token: Optional[str] = None, registry: Optional[FolderRegistry] = None) -> SyncContext:
    """Builds the real backends. The registry is loaded and validated here so a bad registry aborts before anything is synced.

    Without a GitHub token there is no VCS backend, which is fine for passes that never touch GitHub.
    """
    if not registry:
        registry = FolderRegistry.load(config.registry_path)
        registry.validate()

    LOGGER.debug(f"[🔧] Setting up the backends for bucket: {config.bucket} and repo: {config.repo_owner}/{config.repo_name}...")
    object_store = S3Backend(boto3.client("s3", region_name=config.region), config.bucket)
    vcs = GitHubBackend(config.repo_owner, config.repo_name, github_token, api_url=config.github_api_url) if github_token else None
    return SyncContext(config, registry, object_store, vcs, LocalBackend(config.local_base_path))
