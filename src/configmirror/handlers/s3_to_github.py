"""The S3 -> GitHub Lambda handler

Triggered by S3 object created/removed notifications. Each monitored object is mirrored into the environment's branch, unless its
provenance says it came from GitHub in the first place.

:Module: configmirror.handlers.s3_to_github
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from typing import Any, Dict

from configmirror.handlers.lambda_utils import sync_lambda, SyncFailedError
from configmirror.sync.context import SyncContext
from configmirror.sync.executor import ReconciliationExecutor, SyncSummary
from configmirror.sync.models import Backend
from configmirror.sync.passes import sync_object_event
from configmirror.utils.logging import LOGGER


def handle_records(event: Dict[str, Any], sync_context: SyncContext, commit: bool, destination: Backend) -> SyncSummary:
    """Runs every record in the event through the sync engine. Raises SyncFailedError once all of them are done if any failed."""
    executor = ReconciliationExecutor(sync_context, commit=commit)
    summary = SyncSummary()
    for record in event.get("Records", []):
        result = sync_object_event(sync_context, executor, record, destination)
        if result:
            summary.add(result)

    summary.log_summary(f"S3 -> {destination.value} event")
    if summary.exit_code:
        raise SyncFailedError(f"{len(summary.failed)} file(s) failed to sync: {', '.join(result.identity for result in summary.failed)}")

    return summary


@sync_lambda()
def lambda_handler(event: Dict[str, Any], context: object, sync_context: SyncContext, commit: bool) -> Dict[str, int]:  # noqa pylint: disable=W0613
    """This is the Lambda entrypoint for S3 events that mirror into GitHub."""
    summary = handle_records(event, sync_context, commit, Backend.VCS)
    LOGGER.info("[🏁] Completed syncing S3 to GitHub.")
    return {"succeeded": len(summary.succeeded), "skipped": len(summary.skipped), "failed": len(summary.failed)}
