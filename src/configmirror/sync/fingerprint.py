"""Content fingerprints

Two digests, never to be mixed up:
    - SHA-256 of the raw bytes: used to compare local and S3 content.
    - The git blob SHA-1 (`sha1(b"blob <len>\\0" + content)`): that's how GitHub identifies file contents, so it's what gets compared
      against the `sha` the contents API hands back.

:Module: configmirror.sync.fingerprint
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
import hashlib
from typing import Union

from configmirror.sync.models import Backend


def _as_bytes(content: Union[bytes, str]) -> bytes:
    return content.encode("utf-8") if isinstance(content, str) else content


def content_hash(content: Union[bytes, str]) -> str:
    """SHA-256 hex digest of the content."""
    return hashlib.sha256(_as_bytes(content)).hexdigest()


def git_blob_sha(content: Union[bytes, str]) -> str:
    """The SHA-1 that git (and GitHub) would give this content as a blob."""
    data = _as_bytes(content)
    return hashlib.sha1(b"blob %d\x00" % len(data) + data, usedforsecurity=False).hexdigest()


def fingerprint(content: Union[bytes, str], backend: Backend = Backend.OBJECT_STORE) -> str:
    """Fingerprint the content the way the given backend compares it: blob SHA for the VCS, SHA-256 for everything else."""
    if backend == Backend.VCS:
        return git_blob_sha(content)

    return content_hash(content)
