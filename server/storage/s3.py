"""S3-compatible object store backed by boto3 presigned URLs."""

import asyncio
import mimetypes
from typing import AsyncIterator, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from common.constants import DEFAULT_CONTENT_TYPE, STREAM_CHUNK_SIZE_BYTES
from common.logging_config import get_logger
from common.types import StoredObject
from server.exceptions import ObjectNotFoundError, StoreUnavailableError
from server.storage.base import ObjectStoreGateway

logger = get_logger(__name__)

DELETE_BATCH_SIZE = 1000
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _is_not_found(error: ClientError) -> bool:
    return str(error.response.get("Error", {}).get("Code")) in _NOT_FOUND_CODES


class S3ObjectStore(ObjectStoreGateway):
    """
    Object store on an S3 bucket. Grants are presigned ``put_object`` /
    ``get_object`` URLs; bytes never pass through the service on upload.
    """

    backend_name = "s3"

    def __init__(
        self,
        bucket_name: str,
        upload_ttl_seconds: int,
        download_ttl_seconds: int,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        chunk_size: int = STREAM_CHUNK_SIZE_BYTES,
        client=None,
    ):
        if not bucket_name:
            raise StoreUnavailableError("S3 bucket name is not configured")

        self.bucket_name = bucket_name
        self.upload_ttl_seconds = upload_ttl_seconds
        self.download_ttl_seconds = download_ttl_seconds
        self.chunk_size = chunk_size
        self.client = client or boto3.client(
            "s3",
            region_name=region_name,
            endpoint_url=endpoint_url,
        )
        logger.info(f"S3 object store ready [bucket={bucket_name}]")

    async def _call(self, operation: str, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(f"{operation}: object not found") from e
            logger.error(f"S3 {operation} failed: {e}", exc_info=True)
            raise StoreUnavailableError(f"Object store {operation} failed") from e
        except BotoCoreError as e:
            logger.error(f"S3 {operation} failed: {e}", exc_info=True)
            raise StoreUnavailableError(f"Object store {operation} failed") from e

    async def issue_upload_grant(self, object_key: str, content_type: str) -> str:
        return await self._call(
            "presign_put",
            self.client.generate_presigned_url,
            "put_object",
            Params={"Bucket": self.bucket_name, "Key": object_key, "ContentType": content_type},
            ExpiresIn=self.upload_ttl_seconds,
        )

    async def issue_download_grant(self, object_key: str) -> str:
        return await self._call(
            "presign_get",
            self.client.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket_name, "Key": object_key},
            ExpiresIn=self.download_ttl_seconds,
        )

    def _list_sync(self, prefix: str) -> List[StoredObject]:
        paginator = self.client.get_paginator("list_objects_v2")
        objects = []
        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
            for item in page.get("Contents", []):
                # ListObjectsV2 carries no content type; guess from the key
                content_type, _ = mimetypes.guess_type(item["Key"])
                objects.append(StoredObject(
                    key=item["Key"],
                    size=int(item.get("Size", 0)),
                    content_type=content_type or DEFAULT_CONTENT_TYPE,
                ))
        return objects

    async def list_by_prefix(self, prefix: str) -> List[StoredObject]:
        return await self._call("list", self._list_sync, prefix)

    async def stat(self, object_key: str) -> Optional[StoredObject]:
        try:
            head = await self._call(
                "head",
                self.client.head_object,
                Bucket=self.bucket_name,
                Key=object_key,
            )
        except ObjectNotFoundError:
            return None

        return StoredObject(
            key=object_key,
            size=int(head.get("ContentLength", 0)),
            content_type=head.get("ContentType") or DEFAULT_CONTENT_TYPE,
        )

    async def fetch_stream(self, object_key: str) -> AsyncIterator[bytes]:
        response = await self._call(
            "get",
            self.client.get_object,
            Bucket=self.bucket_name,
            Key=object_key,
        )
        body = response["Body"]
        chunks = body.iter_chunks(self.chunk_size)
        try:
            while True:
                chunk = await self._call("read", next, chunks, None)
                if chunk is None:
                    break
                yield chunk
        finally:
            body.close()

    async def delete_by_prefix(self, prefix: str) -> int:
        objects = await self.list_by_prefix(prefix)
        keys = [obj.key for obj in objects]
        failed = 0

        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            response = await self._call(
                "delete",
                self.client.delete_objects,
                Bucket=self.bucket_name,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
            for error in response.get("Errors", []):
                failed += 1
                logger.warning(f"Failed to delete object {error.get('Key')}: {error.get('Message')}")

        deleted = len(keys) - failed
        logger.info(f"Deleted {deleted} objects [prefix={prefix}]")
        return deleted
