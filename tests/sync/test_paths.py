"""Tests for the path resolver

:Module: configmirror.tests.sync.test_paths
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from typing import Any, Dict

from configmirror.registry.registry import FolderRegistry
from configmirror.sync.paths import normalize_key, resolve_key


def test_tracked_key(test_registry: FolderRegistry) -> None:
    """A tracked file directly under a configured prefix is monitored."""
    info = resolve_key("config/staging/test.json", test_registry)
    assert info.monitored
    assert info.environment == "staging"
    assert info.prefix == "config/staging/"
    assert info.folder.name == "config"
    assert info.file_name == "test.json"

    info = resolve_key("payments/production/limits.json", test_registry)
    assert info.monitored
    assert info.environment == "production"
    assert info.folder.name == "payments"

    # Legacy folders resolve to `{prefix}/{environment}`:
    info = resolve_key("legacy/production/settings.json", test_registry)
    assert info.monitored
    assert info.prefix == "legacy/production/"


def test_untracked_file(test_registry: FolderRegistry) -> None:
    """The folder matches but the file isn't tracked by it."""
    assert not resolve_key("config/production/unknown.json", test_registry).monitored


def test_unknown_prefix_base(test_registry: FolderRegistry) -> None:
    """No folder has this prefix base."""
    assert not resolve_key("other/staging/test.json", test_registry).monitored


def test_wrong_suffix_and_shape(test_registry: FolderRegistry) -> None:
    """Only `{base}/{environment}/{file}.json` keys are considered."""
    assert not resolve_key("config/staging/test.txt", test_registry).monitored
    assert not resolve_key("config/test.json", test_registry).monitored
    assert not resolve_key("config/staging/nested/test.json", test_registry).monitored
    assert not resolve_key("test.json", test_registry).monitored
    assert not resolve_key("config/staging/", test_registry).monitored


def test_unknown_environment(test_registry: FolderRegistry) -> None:
    """The environment segment has to be one the folder is configured for."""
    assert not resolve_key("config/development/test.json", test_registry).monitored


def test_prefix_has_to_match_exactly(registry_document: Dict[str, Any]) -> None:
    """A folder that only matches on its base is rejected, and the first matching folder wins."""
    registry_document["folders"][1]["s3_prefix_staging"] = "config/nested/staging"
    registry = FolderRegistry(registry_document)

    # Base `config` matches, staging has a prefix and tracks test.json, but the prefix is `config/nested/staging`:
    assert not resolve_key("config/staging/test.json", registry).monitored
    assert resolve_key("config/production/test.json", registry).monitored

    # Staging-only folder:
    del registry_document["folders"][0]["s3_prefix_production"]
    registry = FolderRegistry(registry_document)
    assert resolve_key("payments/staging/limits.json", registry).monitored
    assert not resolve_key("payments/production/limits.json", registry).monitored


def test_normalize_key() -> None:
    """Event keys are URL encoded."""
    assert normalize_key("config/staging/my+file%2Bv2.json") == "config/staging/my file+v2.json"
    assert normalize_key("config/staging/test.json") == "config/staging/test.json"
