"""Backend error taxonomy

Every backend adapter translates its SDK/HTTP failures into one of these exactly once, at the adapter boundary. Everything above the
adapters only ever looks at the `kind`.

:Module: configmirror.backends.errors
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from enum import Enum
from typing import Optional

from botocore.exceptions import ClientError, ConnectionError as BotoConnectionError


class ErrorKind(Enum):
    """What kind of backend failure this is."""

    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    TRANSIENT = "Transient"
    FATAL = "Fatal"


class BackendError(Exception):
    """Base class for all translated backend errors."""

    kind = ErrorKind.FATAL

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        status = f" (status: {self.status})" if self.status is not None else ""
        return f"{self.kind.value}: {self.message}{status}"


class NotFoundError(BackendError):
    """The object, file, or ref does not exist. Callers treat this as "does not exist"."""

    kind = ErrorKind.NOT_FOUND


class ConflictError(BackendError):
    """An optimistic-concurrency write was rejected (stale blob SHA, non-fast-forward ref update, etc.)."""

    kind = ErrorKind.CONFLICT


class TransientBackendError(BackendError):
    """Throttling, 5xx, or connectivity problems. Safe to try again."""

    kind = ErrorKind.TRANSIENT


class FatalBackendError(BackendError):
    """Anything else. Not retried."""

    kind = ErrorKind.FATAL


S3_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
S3_TRANSIENT_CODES = {"SlowDown", "Throttling", "ThrottlingException", "RequestTimeout", "InternalError", "ServiceUnavailable", "500", "503"}


def translate_client_error(exc: Exception, what: str) -> BackendError:
    """Translates a botocore exception raised while working on `what` into a BackendError."""
    if isinstance(exc, ClientError):
        code = str(exc.response.get("Error", {}).get("Code", ""))
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if code in S3_NOT_FOUND_CODES:
            return NotFoundError(f"{what} does not exist", status=status)

        if code in S3_TRANSIENT_CODES:
            return TransientBackendError(f"{what}: {code}", status=status)

        return FatalBackendError(f"{what}: {code}", status=status)

    if isinstance(exc, BotoConnectionError):
        return TransientBackendError(f"{what}: {exc}")

    return FatalBackendError(f"{what}: {exc}")
