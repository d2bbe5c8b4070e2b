"""Tests for the provenance tagger

:Module: configmirror.tests.sync.test_provenance
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from datetime import datetime, timedelta, timezone

from configmirror.sync.provenance import build_metadata, format_timestamp, parse_timestamp, read_provenance

MOMENT = datetime(2024, 3, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)


def test_timestamps() -> None:
    """Timestamps are written in UTC with milliseconds, and parsing is forgiving."""
    assert format_timestamp(MOMENT) == "2024-03-01T12:30:45.123Z"
    assert format_timestamp(MOMENT.astimezone(timezone(timedelta(hours=-5)))) == "2024-03-01T12:30:45.123Z"

    assert parse_timestamp("2024-03-01T12:30:45.123Z") == MOMENT.replace(microsecond=123000)
    assert parse_timestamp("2024-03-01T12:30:45+00:00") == MOMENT.replace(microsecond=0)

    # Naive means UTC:
    assert parse_timestamp("2024-03-01T12:30:45") == MOMENT.replace(microsecond=0)

    assert parse_timestamp("yesterday-ish") is None
    assert parse_timestamp(None) is None  # noqa


def test_build_metadata() -> None:
    """All the fields are stamped. copied-from is only there for promoted content."""
    metadata = build_metadata("staging", "somehash", "github-staging", "github-to-s3", "payments", "limits.json", "abc123", MOMENT)
    assert metadata == {
        "synced-from": "github-staging",
        "sync-direction": "github-to-s3",
        "synced-at": "2024-03-01T12:30:45.123Z",
        "file-hash": "somehash",
        "environment": "staging",
        "source-folder": "payments",
        "source-file": "limits.json",
        "commit-sha": "abc123",
    }

    metadata = build_metadata("production", "somehash", "github-staging-copy", "github-to-s3", "payments", "limits.json", None, MOMENT, copied_from="staging")
    assert metadata["copied-from"] == "staging"
    assert metadata["commit-sha"] == "unknown"


def test_read_provenance() -> None:
    """Provenance reads back what was written, in any key case."""
    provenance = read_provenance(build_metadata("staging", "somehash", "github-staging", "github-to-s3", "payments", "limits.json", "abc123", MOMENT))
    assert provenance.synced_from == "github-staging"
    assert provenance.sync_direction == "github-to-s3"
    assert provenance.synced_at == MOMENT.replace(microsecond=123000)

    provenance = read_provenance({"Synced-From": "github-production"})
    assert provenance.synced_from == "github-production"
    assert provenance.sync_direction is None
    assert provenance.synced_at is None


def test_read_provenance_fails_open() -> None:
    """No metadata, unrelated metadata, or garbage means no provenance at all -- never an error."""
    assert read_provenance(None) is None
    assert read_provenance({}) is None
    assert read_provenance({"owner": "someone"}) is None
    assert read_provenance({"synced-from": "   ", "synced-at": "not a time"}) is None
    assert read_provenance("synced-from=github") is None  # noqa

    # A garbage timestamp alone doesn't take down the rest:
    provenance = read_provenance({"sync-direction": "github-to-s3", "synced-at": "not a time"})
    assert provenance.sync_direction == "github-to-s3"
    assert provenance.synced_at is None
