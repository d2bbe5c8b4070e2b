"""The S3 -> local folders Lambda handler

Triggered by S3 object created/removed notifications. Each monitored object is mirrored into its folder under the local base path.

:Module: configmirror.handlers.s3_to_local
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from typing import Any, Dict

from configmirror.handlers.lambda_utils import sync_lambda
from configmirror.handlers.s3_to_github import handle_records
from configmirror.sync.context import SyncContext
from configmirror.sync.models import Backend
from configmirror.utils.logging import LOGGER


@sync_lambda(needs_vcs=False)
def lambda_handler(event: Dict[str, Any], context: object, sync_context: SyncContext, commit: bool) -> Dict[str, int]:  # noqa pylint: disable=W0613
    """This is the Lambda entrypoint for S3 events that mirror into the local folders."""
    summary = handle_records(event, sync_context, commit, Backend.LOCAL)
    LOGGER.info("[🏁] Completed syncing S3 to the local folders.")
    return {"succeeded": len(summary.succeeded), "skipped": len(summary.skipped), "failed": len(summary.failed)}
