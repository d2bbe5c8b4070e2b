"""The reconciliation executor

Applies decisions to the destination backend. Per-file failures are caught here (as BackendErrors), recorded, and never stop the
other files from being processed. The `SyncSummary` collects the results and provides the process exit code.

GitHub has no empty directories. When a file has to land in a directory that doesn't exist yet, a placeholder file is written into
each missing directory first, then the real file, and then the placeholders are removed again.

:Module: configmirror.sync.executor
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from typing import Dict, List, Optional, Tuple

from configmirror.backends.errors import BackendError, NotFoundError
from configmirror.backends.github import TreeChange
from configmirror.sync.context import SyncContext
from configmirror.sync.fingerprint import content_hash
from configmirror.sync.models import Backend, Decision, ResultStatus, SyncAction, SyncRecord, SyncResult
from configmirror.sync.provenance import build_metadata
from configmirror.utils.logging import LOGGER
from configmirror.utils.niceties import utc_now

PLACEHOLDER_NAME = "README.md"


class SyncSummary:
    """The results of a run."""

    def __init__(self):
        self.results: List[SyncResult] = []

    def add(self, result: SyncResult) -> None:
        """Adds a result."""
        self.results.append(result)

    def extend(self, results: List[SyncResult]) -> None:
        """Adds several results."""
        self.results.extend(results)

    def _with_status(self, status: ResultStatus) -> List[SyncResult]:
        return [result for result in self.results if result.status == status]

    @property
    def succeeded(self) -> List[SyncResult]:
        """Files that were written or deleted."""
        return self._with_status(ResultStatus.SUCCESS)

    @property
    def skipped(self) -> List[SyncResult]:
        """Files that were left alone (including dry runs)."""
        return self._with_status(ResultStatus.SKIPPED)

    @property
    def failed(self) -> List[SyncResult]:
        """Files that could not be synced."""
        return self._with_status(ResultStatus.FAILED)

    @property
    def exit_code(self) -> int:
        """Non-zero if, and only if, something failed. Skips are not failures."""
        return 1 if self.failed else 0

    def log_summary(self, title: str) -> None:
        """Logs the success/skip/fail counts and the per-file outcomes."""
        LOGGER.info(f"[📊] {title}: {len(self.succeeded)} succeeded, {len(self.skipped)} skipped, {len(self.failed)} failed.")
        for result in self.succeeded:
            LOGGER.info(f"[✅] {result.action.value}: {result.identity}")

        for result in self.skipped:
            LOGGER.info(f"[⏭️] Skipped: {result.identity} -- {result.reason}")

        for result in self.failed:
            LOGGER.error(f"[❌] Failed to {result.action.value.lower()}: {result.identity} -- {result.reason}")


def _skipped(decision: Decision, record: SyncRecord, reason: str) -> SyncResult:
    return SyncResult(record.identity, ResultStatus.SKIPPED, decision.action, reason)


class ReconciliationExecutor:
    """Applies decisions. Nothing is written unless `commit` is True."""

    def __init__(self, context: SyncContext, commit: bool = False):
        self.context = context
        self.commit = commit

    def _pre_check(self, decision: Decision, record: SyncRecord) -> Optional[SyncResult]:
        """Returns a skipped result if there is nothing to do (a Skip decision, or a dry run). Otherwise returns None."""
        if decision.action == SyncAction.SKIP:
            LOGGER.info(f"[⏭️] Skipping {record.identity}: {decision.reason}")
            return _skipped(decision, record, decision.reason)

        if not self.commit:
            LOGGER.info(f"[⏭️] Commit is not enabled: would {decision.action.value.lower()} {record.identity} ({decision.reason}).")
            return _skipped(decision, record, f"dry run: would {decision.action.value.lower()} ({decision.reason})")

        return None

    def execute(self, decision: Decision, record: SyncRecord) -> SyncResult:
        """Applies one decision to the record's destination."""
        skipped = self._pre_check(decision, record)
        if skipped:
            return skipped

        appliers = {
            Backend.OBJECT_STORE: self._apply_object_store,
            Backend.LOCAL: self._apply_local,
            Backend.VCS: self._apply_vcs,
        }
        try:
            appliers[record.destination_backend](decision.action, record)

        except BackendError as exc:
            LOGGER.error(f"[💥] Unable to {decision.action.value.lower()} {record.identity} in {record.destination_backend.value}: {exc}")
            return SyncResult(record.identity, ResultStatus.FAILED, decision.action, str(exc))

        LOGGER.info(f"[✅] {decision.action.value}: {record.identity} in {record.destination_backend.value}")
        return SyncResult(record.identity, ResultStatus.SUCCESS, decision.action, decision.reason)

    def _apply_object_store(self, action: SyncAction, record: SyncRecord) -> None:
        config = self.context.config
        key = record.folder.s3_key_for(record.environment, record.file_name)
        if action == SyncAction.DELETE:
            self.context.object_store.delete_object(key)
            return

        synced_from = f"{config.sync_source}-{record.copied_from}-copy" if record.copied_from else config.synced_from(record.environment)
        metadata = build_metadata(
            record.environment,
            content_hash(record.content),
            synced_from,
            config.sync_direction,
            record.folder.name,
            record.file_name,
            config.commit_sha,
            utc_now(),
            copied_from=record.copied_from,
        )
        self.context.object_store.put_object(key, record.content, metadata)

    def _apply_local(self, action: SyncAction, record: SyncRecord) -> None:
        path = record.folder.local_file_for(record.environment, record.file_name)
        if action == SyncAction.DELETE:
            self.context.local.delete(path)
        else:
            self.context.local.write(path, record.content)

    def _apply_vcs(self, action: SyncAction, record: SyncRecord) -> None:
        vcs = self.context.vcs
        path = record.folder.local_file_for(record.environment, record.file_name)
        branch = self.context.config.branch_for(record.environment)

        if action == SyncAction.DELETE:
            sha = record.destination_version
            try:
                if not sha:
                    sha = vcs.get_file(path, branch).sha

                vcs.delete_file(path, f"🗑️ Remove synced file: {record.file_name} ({record.environment})", branch, sha)

            except NotFoundError:
                LOGGER.debug(f"[🤷] {path} is already gone from {branch}.")

            return

        placeholders = self._create_placeholders(path, branch)
        try:
            # Conditioned on the blob SHA that was seen when deciding: if the file moved on since, GitHub rejects this.
            vcs.put_file(path, record.content, f"🔄 Sync from S3: {record.file_name} ({record.environment})", branch, sha=record.destination_version)

        finally:
            self._remove_placeholders(placeholders, branch)

    def _create_placeholders(self, path: str, branch: str) -> List[Tuple[str, str]]:
        """Writes a placeholder into every parent directory that doesn't exist yet. Returns (path, blob sha) for each one.

        If any of them can't be written, the ones that were are removed before the error is raised.
        """
        vcs = self.context.vcs
        directories = path.split("/")[:-1]
        placeholders = []
        missing = False
        try:
            for depth in range(1, len(directories) + 1):
                directory = "/".join(directories[:depth])

                # Once a directory is missing, everything below it is missing too:
                if not missing and vcs.path_exists(directory, branch):
                    continue

                missing = True
                placeholder = f"{directory}/{PLACEHOLDER_NAME}"
                LOGGER.debug(f"[📁] Creating the directory placeholder: {placeholder}")
                content = f"# {directory}\n\nPlaceholder so that this directory exists. It is removed once the synced file is written.\n".encode("utf-8")
                sha = vcs.put_file(placeholder, content, f"chore: create {placeholder} directory placeholder", branch)
                placeholders.append((placeholder, sha))

        except BackendError:
            self._remove_placeholders(placeholders, branch)
            raise

        return placeholders

    def _remove_placeholders(self, placeholders: List[Tuple[str, str]], branch: str) -> None:
        for placeholder, sha in reversed(placeholders):
            try:
                self.context.vcs.delete_file(placeholder, f"chore: remove {placeholder} directory placeholder", branch, sha)

            except BackendError as exc:
                LOGGER.warning(f"[⚠️] Unable to remove the directory placeholder: {placeholder}: {exc}")

    def execute_batch(self, items: List[Tuple[Decision, SyncRecord]]) -> List[SyncResult]:
        """Applies VCS decisions as one commit per branch: a single tree + commit + ref update.

        The commit is parented on the commit the records were planned against (`base_commit`), so if the branch moved in between,
        the ref update is rejected instead of overwriting whatever landed. If any step fails, every file in that commit is failed
        and the branch is left exactly as it was.
        """
        results = []
        pending: Dict[str, List[Tuple[Decision, SyncRecord]]] = {}
        for decision, record in items:
            if record.destination_backend != Backend.VCS:
                raise ValueError(f"Batch commits only apply to the VCS backend, not: {record.destination_backend.value}")

            skipped = self._pre_check(decision, record)
            if skipped:
                results.append(skipped)
                continue

            pending.setdefault(self.context.config.branch_for(record.environment), []).append((decision, record))

        for branch, batch in pending.items():
            changes = [
                TreeChange(
                    record.folder.local_file_for(record.environment, record.file_name),
                    None if decision.action == SyncAction.DELETE else record.content,
                )
                for decision, record in batch
            ]
            environments = sorted({record.environment for _, record in batch})
            message = f"🔄 Sync {len(changes)} file(s) from S3 ({', '.join(environments)})"
            base_commits = {record.base_commit for _, record in batch if record.base_commit}
            if len(base_commits) > 1:
                raise ValueError(f"The records for {branch} were planned against different commits: {', '.join(sorted(base_commits))}")

            try:
                self.context.vcs.commit_changes(branch, changes, message, base_commit=base_commits.pop() if base_commits else None)

            except BackendError as exc:
                LOGGER.error(f"[💥] The batch commit of {len(changes)} file(s) to {branch} failed -- nothing was changed: {exc}")
                results.extend(SyncResult(record.identity, ResultStatus.FAILED, decision.action, f"batch commit failed: {exc}") for decision, record in batch)
                continue

            results.extend(SyncResult(record.identity, ResultStatus.SUCCESS, decision.action, decision.reason) for decision, record in batch)

        return results
