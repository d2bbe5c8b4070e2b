"""Lambda utility functions for the sync handlers.

:Module: configmirror.handlers.lambda_utils
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
import os
from functools import wraps
from typing import Any, Callable, Dict

from configmirror.sync.context import build_sync_context, SyncConfig
from configmirror.utils.configuration import MIRROR_CONFIGURATION
from configmirror.utils.logging import LOGGER
from configmirror.utils.secrets import resolve_github_token


# Set up the configuration now so loggers are properly configured:
MIRROR_CONFIGURATION.config  # noqa pylint: disable=W0104


class SyncFailedError(Exception):
    """Raised at the end of an invocation if any file failed to sync, so that the invocation is reported as failed."""


def sync_lambda(needs_vcs: bool = True) -> Callable:
    """Decorator for the sync Lambda handlers. It builds the SyncContext once per invocation and handles the commit flag.

    Everything that reads the environment lives here:
        - MIRROR_COMMIT: "true" (any case) enables writes. Anything else is a dry run.
        - GITHUB_SHA: the commit SHA recorded in the provenance metadata.
        - AWS_LAMBDA_FUNCTION_NAME: on Lambda the local base path is /tmp, since that's the only writable place.

    Example usage:

        @sync_lambda()
        def lambda_handler(event: Dict[str, Any], context: object, sync_context: SyncContext, commit: bool) -> None:
            ...
    """

    def wrapped_sync_lambda(func: Callable) -> Callable:
        """Because this decorator takes in an argument, you need to return the real decorator."""

        @wraps(func)
        def wrapped_lambda_handler(event: Dict[str, Any], context: object) -> Any:  # noqa
            """This is the wrapped handler that gets the validated SyncContext and the commit flag injected into it."""
            LOGGER.info(f"[🛸] Starting {func.__module__}...")

            local_base_path = "/tmp" if os.environ.get("AWS_LAMBDA_FUNCTION_NAME") else None  # nosec
            config = SyncConfig.from_configuration(
                MIRROR_CONFIGURATION.mirror_section, commit_sha=os.environ.get("GITHUB_SHA"), local_base_path=local_base_path
            )

            # If any combination of the string "true" is present, then it's True. The default is thus False.
            commit = os.environ.get("MIRROR_COMMIT", "").lower() == "true"
            if not commit:
                LOGGER.warning("[⚠️] MIRROR_COMMIT is not set to true: nothing will be written!")

            try:
                sync_context = build_sync_context(config, github_token=resolve_github_token() if needs_vcs else None)
                return func(event, context, sync_context, commit)

            except Exception:
                LOGGER.error("[💥] Encountered major problem processing the event. See the stacktrace for details!")
                raise

        return wrapped_lambda_handler

    return wrapped_sync_lambda
