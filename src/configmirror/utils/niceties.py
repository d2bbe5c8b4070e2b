"""Small shared helpers

:Module: configmirror.utils.niceties
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from datetime import datetime, timezone
from typing import Set

import boto3


def get_all_regions(service: str = "s3") -> Set[str]:
    """
    Returns all AWS regions that boto3 knows about for the supplied service (S3 by default).

    Tests can easily mock this function out to return a fixed set of regions that doesn't change with boto3 updates.
    """
    return set(boto3.session.Session().get_available_regions(service))


def utc_now() -> datetime:
    """Timezone aware "now". The decision engine takes this as an argument so that tests can pin the clock."""
    return datetime.now(tz=timezone.utc)
