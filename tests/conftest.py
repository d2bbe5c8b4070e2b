"""PyTest fixtures for the config-mirror package.

This defines the PyTest fixtures that can be used by all config-mirror tests.

:Module: configmirror.tests.conftest
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
# pylint: disable=redefined-outer-name,unused-argument,import-outside-toplevel
import copy
import json
import os
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple
from unittest import mock

import boto3
import pytest
from botocore.client import BaseClient
from moto import mock_aws

import tests
from configmirror.backends.errors import ConflictError, NotFoundError
from configmirror.sync.fingerprint import git_blob_sha

TEST_BUCKET = "test-config-bucket"
TEST_REGION = "us-east-2"

TEST_REGISTRY = {
    "environments": ["staging", "production"],
    "folders": [
        {
            "name": "payments",
            "description": "Payments service configuration",
            "local_path_staging": "app-config/payments/staging",
            "local_path_production": "app-config/payments/production",
            "s3_prefix_staging": "payments/staging",
            "s3_prefix_production": "payments/production",
            "files": [
                {"name": "limits.json", "description": "Transfer limits"},
                {"name": "flags.json", "description": "Feature flags"},
            ],
        },
        {
            "name": "config",
            "description": "Shared configuration",
            "local_path_staging": "app-config/config/staging",
            "local_path_production": "app-config/config/production",
            "s3_prefix_staging": "config/staging",
            "s3_prefix_production": "config/production",
            "files": [{"name": "test.json", "description": "The test file"}],
        },
        {
            "name": "legacy",
            "description": "Still on the unified layout",
            "local_path": "app-config/legacy",
            "s3_prefix": "legacy",
            "files": [{"name": "settings.json", "description": "Old settings"}],
        },
    ],
}


class FakeVcsBackend:
    """An in-memory stand-in for the GitHub backend. Each branch is a dict of path -> bytes.

    Every change moves the branch head to a new commit, and the file tree of each commit is kept so that files can be read at a
    commit SHA. Writes are conditioned on the blob SHA the same way GitHub does it, and `commit_changes` is all or nothing: it is
    rejected if the branch moved past the commit it's parented on.
    """

    def __init__(self):
        self.branches: Dict[str, Dict[str, bytes]] = {"staging": {}, "main": {}}
        self.heads: Dict[str, str] = {}
        self.snapshots: Dict[str, Dict[str, bytes]] = {}
        self.commits: List[Tuple[str, str]] = []
        self.concurrent: List[Tuple[str, str, bytes]] = []
        for branch in self.branches:
            self._advance(branch)

    def _advance(self, branch: str) -> str:
        commit_sha = f"fakecommit{len(self.snapshots) + 1}"
        self.snapshots[commit_sha] = dict(self.branches[branch])
        self.heads[branch] = commit_sha
        return commit_sha

    def _files(self, ref: str) -> Dict[str, bytes]:
        if ref in self.branches:
            return self.branches[ref]

        if ref in self.snapshots:
            return self.snapshots[ref]

        raise NotFoundError(f"ref {ref} does not exist", status=404)

    def seed(self, branch: str, path: str, content: bytes) -> None:
        """Puts a file on the branch. This moves the head, but isn't counted in `commits`."""
        self._files(branch)[path] = content
        self._advance(branch)

    def push_before_next_commit(self, branch: str, path: str, content: bytes) -> None:
        """Queues up a change that someone else pushes to the branch just before the next `commit_changes` is applied."""
        self.concurrent.append((branch, path, content))

    def get_ref(self, branch: str) -> str:
        """Mirrors GitHubBackend.get_ref."""
        if branch not in self.heads:
            raise NotFoundError(f"ref heads/{branch} does not exist", status=404)

        return self.heads[branch]

    def get_file(self, path: str, ref: str):
        """Mirrors GitHubBackend.get_file. The ref can be a branch or a commit SHA."""
        from configmirror.backends.github import VcsFile

        files = self._files(ref)
        if path not in files:
            raise NotFoundError(f"{path}@{ref} does not exist", status=404)

        return VcsFile(path, files[path], git_blob_sha(files[path]))

    def path_exists(self, path: str, ref: str) -> bool:
        """A path exists if it's a file or a directory with something in it."""
        files = self._files(ref)
        return path in files or any(name.startswith(f"{path}/") for name in files)

    def put_file(self, path: str, content: bytes, message: str, branch: str, sha: Optional[str] = None) -> str:
        """Mirrors GitHubBackend.put_file, including the SHA check."""
        files = self._files(branch)
        current = files.get(path)
        if current is not None and sha != git_blob_sha(current):
            raise ConflictError(f"write of {path} was rejected: {path} does not match {sha}", status=409)

        if current is None and sha:
            raise ConflictError(f"write of {path} was rejected: sha was supplied for a new file", status=422)

        files[path] = content
        self._advance(branch)
        self.commits.append((branch, message))
        return git_blob_sha(content)

    def delete_file(self, path: str, message: str, branch: str, sha: str) -> None:
        """Mirrors GitHubBackend.delete_file."""
        files = self._files(branch)
        if path not in files:
            raise NotFoundError(f"delete of {path} does not exist", status=404)

        if sha != git_blob_sha(files[path]):
            raise ConflictError(f"delete of {path} was rejected: {path} does not match {sha}", status=409)

        del files[path]
        self._advance(branch)
        self.commits.append((branch, message))

    def commit_changes(self, branch: str, changes: List[Any], message: str, base_commit: Optional[str] = None) -> str:
        """Builds the new tree on top of `base_commit` (or the head) and only moves the branch if that is still the head."""
        base_commit = base_commit or self.get_ref(branch)
        updated = dict(self._files(base_commit))
        for change in changes:
            if change.is_delete:
                updated.pop(change.path, None)
            else:
                updated[change.path] = change.content

        for concurrent_branch, path, content in self.concurrent:
            self.seed(concurrent_branch, path, content)
        self.concurrent = []

        if self.heads[branch] != base_commit:
            raise ConflictError(f"ref update of heads/{branch} was rejected: Update is not a fast forward", status=422)

        self.branches[branch] = updated
        self.commits.append((branch, message))
        return self._advance(branch)


@pytest.fixture
def test_configuration() -> Generator[Dict[str, Any], None, None]:
    """Fixture with a test configuration loader for use in unit tests."""
    from configmirror.utils.configuration import MIRROR_CONFIGURATION

    old_value = MIRROR_CONFIGURATION._configuration_path
    MIRROR_CONFIGURATION._configuration_path = f"{tests.__path__[0]}/test_configuration_files"  # noqa
    MIRROR_CONFIGURATION._app_config = None

    yield MIRROR_CONFIGURATION.config

    MIRROR_CONFIGURATION._app_config = None
    MIRROR_CONFIGURATION._configuration_path = old_value


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = TEST_REGION


@pytest.fixture
def aws_s3(aws_credentials: None) -> Generator[BaseClient, None, None]:
    """This is a fixture for a Moto wrapped AWS S3 mock with the test bucket created."""
    with mock_aws():
        client = boto3.client("s3", region_name=TEST_REGION)
        client.create_bucket(Bucket=TEST_BUCKET, CreateBucketConfiguration={"LocationConstraint": TEST_REGION})
        yield client


@pytest.fixture
def aws_secretsmanager(aws_credentials: None) -> Generator[BaseClient, None, None]:
    """This is a fixture for a Moto wrapped AWS SecretsManager mock for the entire unit test."""
    with mock_aws():
        yield boto3.client("secretsmanager", region_name=TEST_REGION)


@pytest.fixture
def mock_retry() -> None:
    """
    This mocks out the retry decorator so things don't block.

    NOTE: This fixture must be run **BEFORE** you import from a file that contains the @retry decorator, since it mocks out the original function.
    Modules that are imported after this is set get the mocked out decorator. Anything imported before keeps the real one. Keep the imports of
    `configmirror.backends.github` (and anything that imports it) inside the tests and fixtures for that reason.

    ## ALSO NOTE: This runs on *each and every* test -- set in pyproject.toml
    """

    def mock_retry_decorator(*args, **kwargs) -> Callable:  # noqa
        """This mocks out the retry decorator."""

        def retry(func: Callable) -> Callable:
            """This is the mocked out retry function itself that doesn't do anything."""
            return func

        return retry

    with mock.patch("retry.retry", mock_retry_decorator):
        yield


@pytest.fixture
def registry_document() -> Dict[str, Any]:
    """A fresh copy of the test registry document."""
    return copy.deepcopy(TEST_REGISTRY)


@pytest.fixture
def registry_file(tmp_path: Any, registry_document: Dict[str, Any]) -> str:
    """The test registry written out to disk. Returns the path."""
    path = str(tmp_path / "folders.json")
    with open(path, "w", encoding="utf-8") as file:
        json.dump(registry_document, file, indent=2)

    return path


@pytest.fixture
def test_registry(registry_file: str) -> Any:
    """The loaded (and validated) test registry."""
    from configmirror.registry.registry import FolderRegistry

    registry = FolderRegistry.load(registry_file)
    registry.validate()
    return registry


@pytest.fixture
def fake_vcs() -> FakeVcsBackend:
    """An empty in-memory repository with the staging and main branches."""
    return FakeVcsBackend()


@pytest.fixture
def sync_config(tmp_path: Any, registry_file: str) -> Any:
    """A SyncConfig pointing at the test bucket and a temporary checkout."""
    from configmirror.sync.context import SyncConfig

    return SyncConfig(
        TEST_BUCKET,
        TEST_REGION,
        "fakeorg",
        "config-repo",
        registry_path=registry_file,
        local_base_path=str(tmp_path / "checkout"),
        commit_sha="abc123",
    )


@pytest.fixture
def sync_context(sync_config: Any, test_registry: Any, aws_s3: BaseClient, fake_vcs: FakeVcsBackend) -> Any:
    """A SyncContext with moto S3, the fake GitHub, and a local backend in a temporary directory."""
    from configmirror.backends.local import LocalBackend
    from configmirror.backends.s3 import S3Backend
    from configmirror.sync.context import SyncContext

    return SyncContext(sync_config, test_registry, S3Backend(aws_s3, TEST_BUCKET), fake_vcs, LocalBackend(sync_config.local_base_path))
