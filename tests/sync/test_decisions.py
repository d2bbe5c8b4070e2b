"""Tests for the sync decision engine and the three-way reconciliation

:Module: configmirror.tests.sync.test_decisions
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from datetime import datetime, timedelta, timezone

from configmirror.sync.decisions import decide, originates_from, ReconciliationStatus, reconcile_three_way, suppressed_by_provenance
from configmirror.sync.models import Backend, Provenance, SyncAction, SyncState

NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _state(content_hash: str, provenance: Provenance = None) -> SyncState:
    return SyncState(True, content_hash, provenance=provenance)


def test_idempotence() -> None:
    """Equal hashes are always a Skip, so a second run with no external changes does nothing."""
    decision = decide(_state("aaa"), _state("aaa"), Backend.VCS, now=NOW)
    assert decision.action == SyncAction.SKIP
    assert decision.reason == "content is identical"

    assert decide(_state("aaa"), _state("bbb"), Backend.VCS, now=NOW).action == SyncAction.UPDATE
    assert decide(_state("aaa"), SyncState.missing(), Backend.VCS, now=NOW).action == SyncAction.CREATE


def test_loop_safety() -> None:
    """Anything tagged as coming from GitHub is never sent back to GitHub, whatever the content."""
    tagged = Provenance(synced_from="github-staging", sync_direction="github-to-s3", synced_at=NOW - timedelta(days=3))
    for destination in (_state("bbb"), SyncState.missing(), _state("aaa")):
        decision = decide(_state("aaa", tagged), destination, Backend.VCS, now=NOW)
        assert decision.action == SyncAction.SKIP
        assert "provenance" in decision.reason

    # Provenance is checked before existence:
    decision = decide(SyncState(False, provenance=tagged), _state("bbb"), Backend.VCS, now=NOW)
    assert decision.action == SyncAction.SKIP

    # Either field is enough:
    assert originates_from(Provenance(sync_direction="github-to-s3"), Backend.VCS)
    assert originates_from(Provenance(synced_from="github-production"), Backend.VCS)
    assert originates_from(Provenance(sync_direction="GitHub-to-S3"), Backend.VCS)

    # The local tree is a checkout, so GitHub content counts as local content:
    assert originates_from(Provenance(sync_direction="github-to-s3"), Backend.LOCAL)
    assert originates_from(Provenance(synced_from="local-staging"), Backend.LOCAL)
    assert not originates_from(Provenance(synced_from="local-staging"), Backend.VCS)

    # Content that came from S3 can go to GitHub:
    assert not originates_from(Provenance(synced_from="s3-console", sync_direction="s3-to-github"), Backend.VCS)
    assert originates_from(Provenance(sync_direction="s3-to-github"), Backend.OBJECT_STORE)


def test_unknown_provenance_fails_open() -> None:
    """No provenance is not a reason to skip."""
    assert not originates_from(None, Backend.VCS)
    assert not originates_from(Provenance(), Backend.VCS)
    assert decide(_state("aaa", None), _state("bbb"), Backend.VCS, now=NOW).action == SyncAction.UPDATE
    assert decide(_state("aaa", Provenance(synced_from="someone-by-hand")), _state("bbb"), Backend.VCS, now=NOW).action == SyncAction.UPDATE


def test_recency_suppression() -> None:
    """Synced just now is skipped. Ten minutes ago is not, at least not because of recency."""
    recent = Provenance(synced_from="s3-console", synced_at=NOW)
    decision = decide(_state("aaa", recent), _state("bbb"), Backend.VCS, now=NOW)
    assert decision.action == SyncAction.SKIP
    assert "inside the 300s window" in decision.reason

    older = Provenance(synced_from="s3-console", synced_at=NOW - timedelta(minutes=10))
    assert decide(_state("aaa", older), _state("bbb"), Backend.VCS, now=NOW).action == SyncAction.UPDATE

    # Clock skew: the future counts as recent:
    future = Provenance(synced_from="s3-console", synced_at=NOW + timedelta(minutes=2))
    assert decide(_state("aaa", future), _state("bbb"), Backend.VCS, now=NOW).action == SyncAction.SKIP

    # The window is configurable:
    assert decide(_state("aaa", older), _state("bbb"), Backend.VCS, now=NOW, window=timedelta(minutes=15)).action == SyncAction.SKIP
    assert decide(_state("aaa", recent), _state("bbb"), Backend.VCS, now=NOW, window=timedelta(0)).action == SyncAction.UPDATE


def test_suppressed_by_provenance() -> None:
    """The metadata-only check agrees with the decision engine's first two steps."""
    tagged = Provenance(synced_from="github-staging", sync_direction="github-to-s3", synced_at=NOW - timedelta(days=3))
    assert suppressed_by_provenance(tagged, Backend.VCS, NOW).action == SyncAction.SKIP
    assert suppressed_by_provenance(tagged, Backend.VCS, NOW).reason == decide(_state("aaa", tagged), _state("bbb"), Backend.VCS, now=NOW).reason

    recent = Provenance(synced_from="s3-console", synced_at=NOW - timedelta(seconds=10))
    assert suppressed_by_provenance(recent, Backend.VCS, NOW).action == SyncAction.SKIP
    assert suppressed_by_provenance(recent, Backend.VCS, NOW, window=timedelta(seconds=5)) is None

    assert suppressed_by_provenance(None, Backend.VCS, NOW) is None
    assert suppressed_by_provenance(Provenance(), Backend.LOCAL, NOW) is None


def test_deletion_propagation() -> None:
    """Deletes only go forward."""
    decision = decide(SyncState.missing(), _state("bbb"), Backend.LOCAL, now=NOW)
    assert decision.action == SyncAction.DELETE
    assert decision.reason == "source no longer exists"

    assert decide(SyncState.missing(), SyncState.missing(), Backend.LOCAL, now=NOW).action == SyncAction.SKIP


def test_three_way_conflict() -> None:
    """Three different hashes is a conflict with no winner."""
    result = reconcile_three_way(_state("aaa"), _state("bbb"), _state("ccc"))
    assert result.status == ReconciliationStatus.CONFLICT
    assert result.source is None
    assert not result.stale
    assert result.direction is None
    assert result.hashes == {Backend.LOCAL: "aaa", Backend.OBJECT_STORE: "bbb", Backend.VCS: "ccc"}

    # Two copies that disagree and nothing else is also a conflict:
    assert reconcile_three_way(_state("aaa"), _state("bbb"), SyncState.missing()).status == ReconciliationStatus.CONFLICT


def test_three_way_majority() -> None:
    """The odd one out (or the missing ones) are stale. GitHub is the preferred source."""
    result = reconcile_three_way(_state("aaa"), _state("aaa"), _state("aaa"))
    assert result.status == ReconciliationStatus.IN_SYNC

    result = reconcile_three_way(_state("aaa"), _state("bbb"), _state("aaa"))
    assert result.status == ReconciliationStatus.OUT_OF_SYNC
    assert result.source == Backend.VCS
    assert result.stale == [Backend.OBJECT_STORE]
    assert result.direction == "vcs -> object-store"

    result = reconcile_three_way(_state("aaa"), _state("bbb"), _state("bbb"))
    assert result.source == Backend.VCS
    assert result.stale == [Backend.LOCAL]

    result = reconcile_three_way(_state("aaa"), _state("aaa"), SyncState.missing())
    assert result.status == ReconciliationStatus.OUT_OF_SYNC
    assert result.source == Backend.LOCAL
    assert result.stale == [Backend.VCS]

    result = reconcile_three_way(SyncState.missing(), _state("aaa"), SyncState.missing())
    assert result.status == ReconciliationStatus.OUT_OF_SYNC
    assert result.source == Backend.OBJECT_STORE
    assert result.direction == "object-store -> vcs, local"

    result = reconcile_three_way(SyncState.missing(), SyncState.missing(), SyncState.missing())
    assert result.status == ReconciliationStatus.MISSING


def test_state_repr_has_the_version() -> None:
    """The blob SHA shows up in the logs next to the hash."""
    state = SyncState(True, "aaa", version="blobsha")
    assert repr(state) == "SyncState(exists=True, content_hash='aaa', version='blobsha', provenance=None)"
    assert reconcile_three_way(SyncState.missing(), SyncState.missing(), SyncState.missing()).hashes == {
        Backend.LOCAL: None,
        Backend.OBJECT_STORE: None,
        Backend.VCS: None,
    }
