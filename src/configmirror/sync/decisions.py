"""The sync decision engine

One engine for every direction. Given what the source and destination currently hold, it decides whether to skip, create, update,
or delete the destination. The rules are checked in this order:

    1. Provenance: the source content was tagged as originating from the destination system -> Skip. This is the loop breaker and
       is checked before anything else.
    2. Recency: the source content was synced less than the suppression window ago -> Skip. Timestamps in the future also count as
       recent. This covers events that get re-triggered before the provenance tag is visible.
    3. Source gone, destination present -> Delete. Deletions only go forward; the destination never resurrects the source.
    4. Destination gone, source present -> Create.
    5. Equal fingerprints -> Skip, otherwise Update.

The window and the fail-open handling of missing provenance are tuning knobs, not correctness guarantees: an event delayed by more
than the window can still get through. That's a known gap.

For the three-way report (local, S3, GitHub), `reconcile_three_way` goes by majority hash agreement and never picks a winner when
there's no majority.

:Module: configmirror.sync.decisions
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from collections import Counter
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional

from configmirror.sync.models import Backend, Decision, Provenance, SyncAction, SyncState
from configmirror.utils.niceties import utc_now

DEFAULT_SUPPRESSION_WINDOW = timedelta(minutes=5)

# Provenance identifiers that mean "this content came from the destination". The local tree is a checkout of the repository,
# so GitHub-originated content counts as local-originated too.
ORIGIN_IDENTIFIERS = {
    Backend.VCS: ("github",),
    Backend.LOCAL: ("github", "local"),
    Backend.OBJECT_STORE: ("s3",),
}


def originates_from(provenance: Optional[Provenance], destination: Backend) -> bool:
    """True if the provenance explicitly says the content came from the destination system. Unknown provenance is never a match."""
    if not provenance:
        return False

    identifiers = ORIGIN_IDENTIFIERS[destination]

    # `github-to-s3` -> `github`:
    direction = (provenance.sync_direction or "").lower()
    if "-to-" in direction and direction.split("-to-")[0] in identifiers:
        return True

    synced_from = (provenance.synced_from or "").lower()
    return any(identifier in synced_from for identifier in identifiers)


def recently_synced(provenance: Optional[Provenance], now: datetime, window: timedelta) -> bool:
    """True if the provenance carries a synced-at inside the window. Future timestamps count as recent."""
    if not provenance or not provenance.synced_at:
        return False

    return now - provenance.synced_at < window


def suppressed_by_provenance(
    provenance: Optional[Provenance], destination_backend: Backend, now: datetime, window: timedelta = DEFAULT_SUPPRESSION_WINDOW
) -> Optional[Decision]:
    """The Skip decision if the provenance alone rules out syncing (origin, then recency). Otherwise None.

    This only needs the metadata, so it can be checked before the content is fetched.
    """
    if originates_from(provenance, destination_backend):
        return Decision(
            SyncAction.SKIP,
            f"provenance says it came from {destination_backend.value} "
            f"(synced-from: {provenance.synced_from}, sync-direction: {provenance.sync_direction})",
        )

    if recently_synced(provenance, now, window):
        return Decision(SyncAction.SKIP, f"synced at {provenance.synced_at.isoformat()}, inside the {int(window.total_seconds())}s window")

    return None


def decide(
    source: SyncState,
    destination: SyncState,
    destination_backend: Backend,
    now: Optional[datetime] = None,
    window: timedelta = DEFAULT_SUPPRESSION_WINDOW,
) -> Decision:
    """Decide what to do with the destination. The hashes on both sides must have been computed the same way (see fingerprint)."""
    suppressed = suppressed_by_provenance(source.provenance, destination_backend, now or utc_now(), window)
    if suppressed:
        return suppressed

    if not source.exists:
        if destination.exists:
            return Decision(SyncAction.DELETE, "source no longer exists")

        return Decision(SyncAction.SKIP, "absent on both sides")

    if not destination.exists:
        return Decision(SyncAction.CREATE, f"missing from {destination_backend.value}")

    if source.content_hash == destination.content_hash:
        return Decision(SyncAction.SKIP, "content is identical")

    return Decision(SyncAction.UPDATE, "content differs")


class ReconciliationStatus(Enum):
    """The three-way verdict for a file."""

    IN_SYNC = "in-sync"
    OUT_OF_SYNC = "out-of-sync"
    CONFLICT = "conflict"
    MISSING = "missing"


class ThreeWayResult:
    """The three-way verdict. For OUT_OF_SYNC, `stale` lists the backends to fix and `source` is a backend holding the majority content."""

    def __init__(
        self,
        status: ReconciliationStatus,
        stale: Optional[List[Backend]] = None,
        source: Optional[Backend] = None,
        hashes: Optional[Dict[Backend, Optional[str]]] = None,
    ):
        self.status = status
        self.stale = stale or []
        self.source = source
        self.hashes = hashes or {}

    @property
    def direction(self) -> Optional[str]:
        """e.g. `vcs -> object-store, local`."""
        if self.status != ReconciliationStatus.OUT_OF_SYNC:
            return None

        return f"{self.source.value} -> {', '.join(backend.value for backend in self.stale)}"


# When more than one backend holds the majority content, the repository is the preferred source:
SOURCE_PREFERENCE = (Backend.VCS, Backend.LOCAL, Backend.OBJECT_STORE)


def reconcile_three_way(local: SyncState, object_store: SyncState, vcs: SyncState) -> ThreeWayResult:
    """Majority-hash reconciliation across the three backends. All three hashes must be computed the same way.

    - Nothing anywhere -> MISSING
    - Everything present agrees -> IN_SYNC if all three exist, otherwise OUT_OF_SYNC with the missing ones stale
    - Two agree, the third differs -> OUT_OF_SYNC with the odd one stale
    - No hash is held by a strict majority of the existing copies -> CONFLICT (manual intervention)
    """
    states = {Backend.LOCAL: local, Backend.OBJECT_STORE: object_store, Backend.VCS: vcs}
    hashes = {backend: (state.content_hash if state.exists else None) for backend, state in states.items()}
    present = {backend: value for backend, value in hashes.items() if value is not None}

    if not present:
        return ThreeWayResult(ReconciliationStatus.MISSING, hashes=hashes)

    counts = Counter(present.values())
    winner, votes = counts.most_common(1)[0]

    if len(counts) == 1:
        if len(present) == len(states):
            return ThreeWayResult(ReconciliationStatus.IN_SYNC, hashes=hashes)

    elif votes * 2 <= len(present):
        return ThreeWayResult(ReconciliationStatus.CONFLICT, hashes=hashes)

    source = next(backend for backend in SOURCE_PREFERENCE if present.get(backend) == winner)
    stale = [backend for backend in SOURCE_PREFERENCE if hashes[backend] != winner]
    return ThreeWayResult(ReconciliationStatus.OUT_OF_SYNC, stale=stale, source=source, hashes=hashes)
