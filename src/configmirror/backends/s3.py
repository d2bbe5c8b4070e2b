"""The object store (S3) backend adapter

:Module: configmirror.backends.s3
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from typing import Any, Dict, List

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from cloudaux.aws.decorators import paginated

from configmirror.backends.errors import translate_client_error
from configmirror.utils.logging import LOGGER


JSON_CONTENT_TYPE = "application/json"


@paginated("Contents", request_pagination_marker="ContinuationToken", response_pagination_marker="NextContinuationToken")
def list_objects_v2(client: BaseClient, **kwargs) -> Dict[str, Any]:
    """This is a cloudaux wrapped call for boto3's list_object_v2 function to obtain all the objects from the given S3 prefix."""
    result = client.list_objects_v2(**kwargs)
    if not result.get("Contents"):
        result["Contents"] = []

    return result


class StoredObject:
    """An object read out of the bucket: the body plus its user metadata (keys without the `x-amz-meta-` prefix)."""

    def __init__(self, key: str, content: bytes, metadata: Dict[str, str]):
        self.key = key
        self.content = content
        self.metadata = metadata


class S3Backend:
    """Adapter around a boto3 S3 client for a single bucket. The client is passed in so tests can hand over a moto client."""

    def __init__(self, client: BaseClient, bucket: str):
        self.client = client
        self.bucket = bucket

    def get_object(self, key: str) -> StoredObject:
        """Fetches the object body and metadata. Raises NotFoundError if it's not there."""
        LOGGER.debug(f"[🪣] Fetching s3://{self.bucket}/{key}...")
        try:
            result = self.client.get_object(Bucket=self.bucket, Key=key)
            return StoredObject(key, result["Body"].read(), result.get("Metadata", {}))

        except (ClientError, BotoCoreError) as exc:
            raise translate_client_error(exc, f"s3://{self.bucket}/{key}") from exc

    def head_object(self, key: str) -> Dict[str, str]:
        """Returns just the user metadata for the object. Raises NotFoundError if it's not there."""
        try:
            return self.client.head_object(Bucket=self.bucket, Key=key).get("Metadata", {})

        except (ClientError, BotoCoreError) as exc:
            raise translate_client_error(exc, f"s3://{self.bucket}/{key}") from exc

    def put_object(self, key: str, content: bytes, metadata: Dict[str, str], content_type: str = JSON_CONTENT_TYPE) -> None:
        """Writes the object with the supplied user metadata."""
        LOGGER.debug(f"[⬆️] Uploading object: s3://{self.bucket}/{key}...")
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=content, ContentType=content_type, Metadata=metadata)

        except (ClientError, BotoCoreError) as exc:
            raise translate_client_error(exc, f"s3://{self.bucket}/{key}") from exc

    def list_keys(self, prefix: str) -> List[str]:
        """Lists all the object keys under the prefix. The listing either completes or raises."""
        LOGGER.debug(f"[📡] Fetching object list from S3: {self.bucket} at prefix: {prefix or 'root of bucket'}.")
        try:
            objects = list_objects_v2(self.client, Bucket=self.bucket, Prefix=prefix)

        except (ClientError, BotoCoreError) as exc:
            raise translate_client_error(exc, f"s3://{self.bucket}/{prefix}") from exc

        keys = [s3_obj["Key"] for s3_obj in objects]
        LOGGER.debug(f"[🧮] Found a total of {len(keys)} object(s) under the prefix.")
        return keys

    def delete_object(self, key: str) -> None:
        """Deletes the object. S3 deletes are already idempotent, so deleting a missing key is fine."""
        LOGGER.debug(f"[🔫] Deleting object: s3://{self.bucket}/{key}...")
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)

        except (ClientError, BotoCoreError) as exc:
            raise translate_client_error(exc, f"s3://{self.bucket}/{key}") from exc
