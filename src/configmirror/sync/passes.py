"""The sync pass drivers

These decide which files to look at and in which direction; the decision engine and the executor do the rest. Files are processed
one at a time, and every state is read fresh from the backends, so a crashed or retried run simply re-derives the same decisions.

    - push_to_object_store: local -> S3 (what CI runs on every merge)
    - pull_to_vcs: S3 -> GitHub, as one atomic commit per branch
    - pull_to_local: S3 -> local
    - sync_object_event: one S3 event record -> GitHub or local (what the Lambda handlers run)
    - report: the three-way local / S3 / GitHub comparison

:Module: configmirror.sync.passes
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from configmirror.backends.errors import BackendError, NotFoundError
from configmirror.registry.registry import Folder
from configmirror.sync.context import SyncContext
from configmirror.sync.decisions import decide, reconcile_three_way, ReconciliationStatus, suppressed_by_provenance, ThreeWayResult
from configmirror.sync.executor import ReconciliationExecutor, SyncSummary
from configmirror.sync.fingerprint import fingerprint
from configmirror.sync.models import Backend, Decision, ResultStatus, SyncAction, SyncRecord, SyncResult, SyncState
from configmirror.sync.paths import normalize_key, resolve_key
from configmirror.sync.provenance import read_provenance
from configmirror.utils.config_schema import ENVIRONMENTS
from configmirror.utils.logging import LOGGER
from configmirror.utils.niceties import utc_now

ReadState = Tuple[SyncState, Optional[bytes]]


def read_state(
    context: SyncContext, backend: Backend, folder: Folder, file_name: str, environment: str, compare_as: Backend, vcs_ref: Optional[str] = None
) -> ReadState:
    """Reads the file from the backend. Returns its state (fingerprinted for comparison against `compare_as`) and its content.

    GitHub is read at `vcs_ref` if given, otherwise at the head of the environment's branch.
    A NotFoundError just means that the file doesn't exist there. Any other BackendError is raised.
    """
    provenance = None
    version = None
    try:
        if backend == Backend.OBJECT_STORE:
            stored = context.object_store.get_object(folder.s3_key_for(environment, file_name))
            content = stored.content
            provenance = read_provenance(stored.metadata)

        elif backend == Backend.LOCAL:
            content = context.local.read(folder.local_file_for(environment, file_name))

        else:
            vcs_file = context.vcs.get_file(folder.local_file_for(environment, file_name), vcs_ref or context.config.branch_for(environment))
            content = vcs_file.content
            version = vcs_file.sha

    except NotFoundError:
        return SyncState.missing(), None

    return SyncState(True, fingerprint(content, compare_as), provenance=provenance, version=version), content


def plan_file(
    context: SyncContext,
    folder: Folder,
    file_name: str,
    environment: str,
    source_backend: Backend,
    destination_backend: Backend,
    source: Optional[ReadState] = None,
    now: Optional[datetime] = None,
    vcs_ref: Optional[str] = None,
) -> Tuple[Decision, SyncRecord]:
    """Reads both sides (unless the source state was handed in) and runs the decision engine.

    `vcs_ref` pins the GitHub reads to a commit. It is kept on the record so that a batch commit is parented on it.
    """
    source_state, content = source or read_state(context, source_backend, folder, file_name, environment, destination_backend)
    destination_state, _ = read_state(context, destination_backend, folder, file_name, environment, destination_backend, vcs_ref=vcs_ref)

    decision = decide(source_state, destination_state, destination_backend, now=now, window=context.config.suppression_window)
    LOGGER.debug(f"[🤔] {folder.name}/{file_name} ({environment}) {source_backend.value} -> {destination_backend.value}: {decision}")

    record = SyncRecord(
        environment,
        folder,
        file_name,
        source_backend,
        destination_backend,
        content=content,
        content_hash=source_state.content_hash,
        provenance=source_state.provenance,
        destination_version=destination_state.version,
        base_commit=vcs_ref if destination_backend == Backend.VCS else None,
    )
    return decision, record


def _failed(identity: str, exc: BackendError) -> SyncResult:
    LOGGER.error(f"[💥] Unable to read the state of {identity}: {exc}")
    return SyncResult(identity, ResultStatus.FAILED, SyncAction.SKIP, str(exc))


def _deletion_guard(decision: Decision, delete_missing: bool) -> Decision:
    if decision.action == SyncAction.DELETE and not delete_missing:
        return Decision(SyncAction.SKIP, "source no longer exists, but deleting missing files is not enabled")

    return decision


def _mirrored_folders(context: SyncContext, environment: str) -> Iterable[Folder]:
    """Folders that have both an S3 prefix and a local path for the environment."""
    for folder in context.registry.folders:
        if folder.s3_prefix_for(environment) and folder.local_path_for(environment):
            yield folder


def push_to_object_store(context: SyncContext, environment: str, commit: bool = False, delete_missing: bool = False, now: Optional[datetime] = None) -> SyncSummary:
    """Pushes the local copy of every tracked file to S3.

    In production, a file that only exists in the staging local path is promoted from staging (tagged as a staging copy).
    """
    LOGGER.info(f"[🚀] Pushing local files to S3 for the {environment} environment...")
    executor = ReconciliationExecutor(context, commit=commit)
    summary = SyncSummary()

    for folder in _mirrored_folders(context, environment):
        for tracked in folder.files:
            identity = f"{folder.name}/{tracked.name} ({environment})"
            try:
                source, copied_from = None, None
                promotable = environment == "production" and folder.local_path_for("staging")
                if promotable and not context.local.exists(folder.local_file_for(environment, tracked.name)):
                    staging_state, staging_content = read_state(context, Backend.LOCAL, folder, tracked.name, "staging", Backend.OBJECT_STORE)
                    if staging_state.exists:
                        LOGGER.info(f"[📋] {identity} only exists in staging: promoting the staging copy.")
                        source, copied_from = (staging_state, staging_content), "staging"

                decision, record = plan_file(context, folder, tracked.name, environment, Backend.LOCAL, Backend.OBJECT_STORE, source=source, now=now)
                record.copied_from = copied_from

            except BackendError as exc:
                summary.add(_failed(identity, exc))
                continue

            summary.add(executor.execute(_deletion_guard(decision, delete_missing), record))

    summary.log_summary(f"Push to S3 ({environment})")
    return summary


def _plan_from_object_store(
    context: SyncContext, environment: str, destination: Backend, delete_missing: bool, summary: SyncSummary, now: Optional[datetime] = None
) -> List[Tuple[Decision, SyncRecord]]:
    """Lists each folder's prefix once and plans every tracked file against the destination.

    For GitHub, the branch head is read once up front and every file is read at that commit.
    """
    base_commit = None
    if destination == Backend.VCS:
        branch = context.config.branch_for(environment)
        base_commit = context.vcs.get_ref(branch)
        LOGGER.debug(f"[🐙] Planning against {branch} at commit: {base_commit}")

    plans = []
    for folder in _mirrored_folders(context, environment):
        prefix = f"{folder.s3_prefix_for(environment)}/"
        listed: Set[str] = set(context.object_store.list_keys(prefix))

        tracked_keys = {folder.s3_key_for(environment, tracked.name) for tracked in folder.files}
        for key in sorted(listed - tracked_keys):
            LOGGER.debug(f"[👾] {key} is in S3 but is not tracked -- ignoring it.")

        for tracked in folder.files:
            identity = f"{folder.name}/{tracked.name} ({environment})"
            key = folder.s3_key_for(environment, tracked.name)
            try:
                source = None if key in listed else (SyncState.missing(), None)
                decision, record = plan_file(
                    context, folder, tracked.name, environment, Backend.OBJECT_STORE, destination, source=source, now=now, vcs_ref=base_commit
                )

            except BackendError as exc:
                summary.add(_failed(identity, exc))
                continue

            plans.append((_deletion_guard(decision, delete_missing), record))

    return plans


def pull_to_vcs(context: SyncContext, environment: str, commit: bool = False, delete_missing: bool = False, now: Optional[datetime] = None) -> SyncSummary:
    """Pulls S3 into the environment's branch. All the changes land in one commit, or none of them do."""
    LOGGER.info(f"[📥] Pulling S3 into GitHub for the {environment} environment...")
    executor = ReconciliationExecutor(context, commit=commit)
    summary = SyncSummary()

    plans = _plan_from_object_store(context, environment, Backend.VCS, delete_missing, summary, now=now)
    summary.extend(executor.execute_batch(plans))

    summary.log_summary(f"Pull from S3 to GitHub ({environment})")
    return summary


def pull_to_local(context: SyncContext, environment: str, commit: bool = False, delete_missing: bool = False, now: Optional[datetime] = None) -> SyncSummary:
    """Pulls S3 into the local folders."""
    LOGGER.info(f"[📥] Pulling S3 into the local folders for the {environment} environment...")
    executor = ReconciliationExecutor(context, commit=commit)
    summary = SyncSummary()

    for decision, record in _plan_from_object_store(context, environment, Backend.LOCAL, delete_missing, summary, now=now):
        summary.add(executor.execute(decision, record))

    summary.log_summary(f"Pull from S3 to local ({environment})")
    return summary


def sync_object_event(
    context: SyncContext, executor: ReconciliationExecutor, event_record: Dict[str, Any], destination: Backend, now: Optional[datetime] = None
) -> Optional[SyncResult]:
    """Processes one S3 event notification record. Returns None if the object isn't something that is mirrored.

    The event name is only logged. Whether the object exists is re-read from S3, since events can arrive late or out of order.
    """
    bucket = event_record["s3"]["bucket"]["name"]
    key = normalize_key(event_record["s3"]["object"]["key"])
    LOGGER.info(f"[📨] Received {event_record.get('eventName', 'unknown event')} for s3://{bucket}/{key}")

    if bucket != context.config.bucket:
        LOGGER.warning(f"[⚠️] The event is for bucket: {bucket}, not the configured bucket: {context.config.bucket} -- ignoring it.")
        return None

    path_info = resolve_key(key, context.registry)
    if not path_info.monitored:
        LOGGER.info(f"[⏭️] {key} is not monitored -- skipping.")
        return None

    if not path_info.folder.local_path_for(path_info.environment):
        LOGGER.info(f"[⏭️] Folder: {path_info.folder.name} has no local path for {path_info.environment} -- skipping.")
        return None

    identity = f"{path_info.folder.name}/{path_info.file_name} ({path_info.environment})"

    # The metadata is enough to drop our own writes without downloading anything:
    try:
        provenance = read_provenance(context.object_store.head_object(key))
    except NotFoundError:
        provenance = None
    except BackendError as exc:
        return _failed(identity, exc)

    suppressed = suppressed_by_provenance(provenance, destination, now or utc_now(), context.config.suppression_window)
    if suppressed:
        record = SyncRecord(path_info.environment, path_info.folder, path_info.file_name, Backend.OBJECT_STORE, destination, provenance=provenance)
        return executor.execute(suppressed, record)

    try:
        decision, record = plan_file(context, path_info.folder, path_info.file_name, path_info.environment, Backend.OBJECT_STORE, destination, now=now)

    except BackendError as exc:
        return _failed(identity, exc)

    return executor.execute(decision, record)


class FileReport:
    """The three-way state of one file. `error` is set (and `result` is None) if a backend couldn't be read."""

    def __init__(self, identity: str, result: Optional[ThreeWayResult] = None, error: Optional[str] = None):
        self.identity = identity
        self.result = result
        self.error = error


REPORT_MARKERS = {
    ReconciliationStatus.IN_SYNC: "✅",
    ReconciliationStatus.OUT_OF_SYNC: "🔀",
    ReconciliationStatus.CONFLICT: "⚠️",
    ReconciliationStatus.MISSING: "❓",
}


def report(context: SyncContext, environments: Iterable[str] = ENVIRONMENTS) -> List[FileReport]:
    """Compares every tracked file across local, S3, and GitHub (all by SHA-256) and logs the results. Nothing is written."""
    reports = []
    for environment in environments:
        for folder in _mirrored_folders(context, environment):
            for tracked in folder.files:
                identity = f"{folder.name}/{tracked.name} ({environment})"
                try:
                    states = [
                        read_state(context, backend, folder, tracked.name, environment, Backend.OBJECT_STORE)[0]
                        for backend in (Backend.LOCAL, Backend.OBJECT_STORE, Backend.VCS)
                    ]

                except BackendError as exc:
                    LOGGER.error(f"[💥] Unable to read the state of {identity}: {exc}")
                    reports.append(FileReport(identity, error=str(exc)))
                    continue

                reports.append(FileReport(identity, result=reconcile_three_way(*states)))

    log_report(reports)
    return reports


def log_report(reports: List[FileReport]) -> None:
    """Console summary of the three-way report."""
    LOGGER.info("[📊] Three-way sync report (local / S3 / GitHub):")
    for file_report in reports:
        if file_report.error:
            LOGGER.error(f"[💥] {file_report.identity}: unable to read -- {file_report.error}")
            continue

        result = file_report.result
        line = f"[{REPORT_MARKERS[result.status]}] {file_report.identity}: {result.status.value}"
        if result.status == ReconciliationStatus.OUT_OF_SYNC:
            line += f" ({result.direction})"
        elif result.status == ReconciliationStatus.CONFLICT:
            line += " -- no majority between the copies, this needs to be resolved by hand"

        LOGGER.info(line)

    counts = {status: sum(1 for item in reports if item.result and item.result.status == status) for status in ReconciliationStatus}
    errors = sum(1 for item in reports if item.error)
    LOGGER.info(
        f"[📊] {counts[ReconciliationStatus.IN_SYNC]} in sync, {counts[ReconciliationStatus.OUT_OF_SYNC]} out of sync, "
        f"{counts[ReconciliationStatus.CONFLICT]} in conflict, {counts[ReconciliationStatus.MISSING]} missing, {errors} unreadable."
    )
