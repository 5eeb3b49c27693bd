from botocore.config import Config
from botocore.exceptions import ClientError
from botocore.exceptions import WaiterError
from scoped_s3fs.interfaces import IObjectStore
from zope.interface import implementer

import boto3
import io
import logging


logger = logging.getLogger(__name__)

# DeleteObjects accepts at most 1000 keys, which is also the largest
# page ListObjectsV2 returns.
MAX_PAGE_SIZE = 1000

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class S3OperationError(Exception):
    """Wraps boto3 ClientError to avoid leaking AWS infrastructure details."""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class ObjectNotFound(S3OperationError):
    """The addressed object does not exist."""


def _error_code(e):
    return e.response.get("Error", {}).get("Code", "Unknown")


def _page(response):
    """Normalize a ListObjectsV2 response."""
    return {
        "common_prefixes": [cp["Prefix"] for cp in response.get("CommonPrefixes", [])],
        "objects": [
            {"key": obj["Key"], "size": obj.get("Size", 0)}
            for obj in response.get("Contents", [])
        ],
        "is_truncated": response.get("IsTruncated", False),
        "next_token": response.get("NextContinuationToken"),
        "key_count": response.get("KeyCount", 0),
    }


@implementer(IObjectStore)
class S3Client:
    """Thin boto3 wrapper for S3-compatible object storage.

    Keys are physical keys; scoping is done by the caller.
    """

    def __init__(
        self,
        bucket_name,
        endpoint_url=None,
        region_name=None,
        aws_access_key_id=None,
        aws_secret_access_key=None,
        use_ssl=True,
        addressing_style="auto",
        connect_timeout=60,
        read_timeout=60,
        page_size=MAX_PAGE_SIZE,
    ):
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(
                f"page-size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}"
            )
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.page_size = page_size

        config = Config(
            s3={"addressing_style": addressing_style},
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
        )

        kwargs = {"config": config}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        if region_name:
            kwargs["region_name"] = region_name
        if aws_access_key_id:
            kwargs["aws_access_key_id"] = aws_access_key_id
        if aws_secret_access_key:
            kwargs["aws_secret_access_key"] = aws_secret_access_key
        kwargs["use_ssl"] = use_ssl
        if not use_ssl:
            logger.warning(
                "S3 SSL is disabled; data and credentials are transmitted in cleartext"
            )

        self._client = boto3.client("s3", **kwargs)

    def __repr__(self):
        return f"<S3Client bucket={self.bucket_name!r}>"

    def _wrap_client_error(self, e, operation, s3_key):
        """Wrap ClientError in a generic error, logging the original at DEBUG."""
        logger.debug("S3 %s failed for key=%s: %s", operation, s3_key, e)
        code = _error_code(e)
        error_class = ObjectNotFound if code in _NOT_FOUND_CODES else S3OperationError
        raise error_class(
            f"S3 {operation} failed for key={s3_key}: {code}", code=code
        ) from e

    # -- Listing --

    def list_page(
        self, prefix, delimiter=None, continuation_token=None, max_keys=None
    ):
        """Fetch one ListObjectsV2 page.

        Returns a dict with ``common_prefixes``, ``objects`` (``key``/``size``
        dicts), ``is_truncated``, ``next_token`` and ``key_count``.
        """
        params = {
            "Bucket": self.bucket_name,
            "Prefix": prefix,
            "MaxKeys": max_keys or self.page_size,
        }
        if delimiter:
            params["Delimiter"] = delimiter
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        try:
            response = self._client.list_objects_v2(**params)
        except ClientError as e:
            self._wrap_client_error(e, "list", prefix)
        return _page(response)

    def iter_pages(self, prefix, delimiter=None):
        """Yield every listing page under ``prefix`` in order.

        Pages are fetched lazily, one request per page.
        """
        params = {"Bucket": self.bucket_name, "Prefix": prefix}
        if delimiter:
            params["Delimiter"] = delimiter
        paginator = self._client.get_paginator("list_objects_v2")
        try:
            for response in paginator.paginate(
                PaginationConfig={"PageSize": self.page_size}, **params
            ):
                yield _page(response)
        except ClientError as e:
            self._wrap_client_error(e, "list", prefix)

    # -- Objects --

    def get_object(self, s3_key):
        try:
            response = self._client.get_object(Bucket=self.bucket_name, Key=s3_key)
        except ClientError as e:
            self._wrap_client_error(e, "get", s3_key)
        return response["Body"]

    def upload_fileobj(self, fileobj, s3_key, content_type=None, metadata=None):
        """Managed upload; large bodies go through multipart upload."""
        if isinstance(fileobj, (bytes, bytearray)):
            fileobj = io.BytesIO(fileobj)
        extra_args = {}
        if content_type:
            extra_args["ContentType"] = content_type
        if metadata:
            extra_args["Metadata"] = dict(metadata)
        try:
            self._client.upload_fileobj(
                fileobj,
                self.bucket_name,
                s3_key,
                ExtraArgs=extra_args or None,
            )
        except ClientError as e:
            self._wrap_client_error(e, "upload", s3_key)

    def put_empty(self, s3_key):
        try:
            self._client.put_object(Bucket=self.bucket_name, Key=s3_key, Body=b"")
        except ClientError as e:
            self._wrap_client_error(e, "put", s3_key)

    def delete_object(self, s3_key):
        try:
            self._client.delete_object(Bucket=self.bucket_name, Key=s3_key)
        except ClientError as e:
            self._wrap_client_error(e, "delete", s3_key)

    def delete_objects(self, s3_keys):
        """Batch delete; returns ``[(key, code), ...]`` for keys S3 refused."""
        if not s3_keys:
            return []
        try:
            response = self._client.delete_objects(
                Bucket=self.bucket_name,
                Delete={"Objects": [{"Key": key} for key in s3_keys], "Quiet": True},
            )
        except ClientError as e:
            self._wrap_client_error(e, "batch delete", s3_keys[0])
        return [
            (err.get("Key"), err.get("Code", "Unknown"))
            for err in response.get("Errors", [])
        ]

    def copy_object(self, src_key, dest_key, metadata=None):
        # The dict form lets botocore URL-encode the copy source; every
        # other call passes keys through untouched.
        params = {
            "Bucket": self.bucket_name,
            "CopySource": {"Bucket": self.bucket_name, "Key": src_key},
            "Key": dest_key,
        }
        if metadata is not None:
            params["Metadata"] = dict(metadata)
            params["MetadataDirective"] = "REPLACE"
        try:
            self._client.copy_object(**params)
        except ClientError as e:
            self._wrap_client_error(e, "copy", src_key)

    def head_object(self, s3_key):
        try:
            return self._client.head_object(Bucket=self.bucket_name, Key=s3_key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return None
            self._wrap_client_error(e, "head", s3_key)

    # -- Buckets --

    def create_bucket(self, name, wait=True):
        params = {"Bucket": name}
        region = self.region_name or self._client.meta.region_name
        if region and region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self._client.create_bucket(**params)
        except ClientError as e:
            self._wrap_client_error(e, "create bucket", name)
        if not wait:
            return
        try:
            self._client.get_waiter("bucket_exists").wait(Bucket=name)
        except WaiterError as e:
            logger.debug("S3 bucket %s did not become available: %s", name, e)
            raise S3OperationError(
                f"S3 bucket {name} did not become available"
            ) from e

    def delete_bucket(self, name):
        try:
            self._client.delete_bucket(Bucket=name)
        except ClientError as e:
            self._wrap_client_error(e, "delete bucket", name)
