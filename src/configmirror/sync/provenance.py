"""The provenance tagger

Every write to S3 is stamped with metadata that says where the content came from. When the S3 event for that write comes back
around, the decision engine sees that stamp and refuses to send the content back where it came from.

Reading is best-effort. An object with no metadata, or with garbage in it, has unknown provenance. That is NOT a reason to skip:
an untagged object is assumed to have been changed by hand and is eligible for syncing. Only an explicit tag stops a sync.

:Module: configmirror.sync.provenance
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from datetime import datetime, timezone
from typing import Dict, Optional

from configmirror.sync.models import Provenance
from configmirror.utils.logging import LOGGER

# Object metadata keys:
SYNCED_FROM = "synced-from"
SYNC_DIRECTION = "sync-direction"
SYNCED_AT = "synced-at"
FILE_HASH = "file-hash"
ENVIRONMENT = "environment"
SOURCE_FOLDER = "source-folder"
SOURCE_FILE = "source-file"
COMMIT_SHA = "commit-sha"
COPIED_FROM = "copied-from"


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a trailing Z."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parses an ISO-8601 timestamp. Naive values are taken as UTC. Returns None if it can't be parsed."""
    try:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"

        parsed = datetime.fromisoformat(text)

    except (AttributeError, TypeError, ValueError):
        LOGGER.debug(f"[🤨] Unable to parse the {SYNCED_AT} value: {value!r} -- ignoring it.")
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed


def build_metadata(
    environment: str,
    file_hash: str,
    synced_from: str,
    sync_direction: str,
    folder: str,
    file_name: str,
    commit_sha: str,
    synced_at: datetime,
    copied_from: Optional[str] = None,
) -> Dict[str, str]:
    """Builds the S3 user metadata for a write."""
    metadata = {
        SYNCED_FROM: synced_from,
        SYNC_DIRECTION: sync_direction,
        SYNCED_AT: format_timestamp(synced_at),
        FILE_HASH: file_hash,
        ENVIRONMENT: environment,
        SOURCE_FOLDER: folder,
        SOURCE_FILE: file_name,
        COMMIT_SHA: commit_sha or "unknown",
    }
    if copied_from:
        metadata[COPIED_FROM] = copied_from

    return metadata


def read_provenance(metadata: Optional[Dict[str, str]]) -> Optional[Provenance]:
    """Reads the provenance out of S3 user metadata. Returns None if there's no provenance at all.

    boto3 hands back the metadata keys lower-cased, but mixed case is tolerated here anyway.
    """
    if not metadata or not isinstance(metadata, dict):
        return None

    lowered = {str(key).lower(): value for key, value in metadata.items()}

    def _text(key: str) -> Optional[str]:
        value = lowered.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()

        return None

    synced_from = _text(SYNCED_FROM)
    sync_direction = _text(SYNC_DIRECTION)
    raw_synced_at = _text(SYNCED_AT)
    synced_at = parse_timestamp(raw_synced_at) if raw_synced_at else None

    if not (synced_from or sync_direction or synced_at):
        return None

    return Provenance(synced_from=synced_from, sync_direction=sync_direction, synced_at=synced_at)

