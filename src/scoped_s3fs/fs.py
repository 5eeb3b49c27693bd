from scoped_s3fs import bulk
from scoped_s3fs.interfaces import IFileSystem
from scoped_s3fs.keys import Scope
from scoped_s3fs.keys import as_directory
from scoped_s3fs.listing import DELIMITER
from scoped_s3fs.listing import ObjectInfo
from scoped_s3fs.listing import list_entries
from scoped_s3fs.s3client import S3Client
from scoped_s3fs.s3client import S3OperationError
from zope.interface import implementer

import logging


logger = logging.getLogger(__name__)

DEFAULT_REGION = "ap-northeast-1"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


@implementer(IFileSystem)
class S3FS:
    """Filesystem-like view of one (namespace, domain) scope of a bucket.

    Paths are virtual and rooted at ``/``. A trailing ``/`` marks a
    directory: ``delete``, ``copy`` and ``move`` act on the whole subtree
    for such paths and on a single object otherwise.
    """

    def __init__(
        self,
        client,
        namespace="",
        domain="",
        max_workers=bulk.DEFAULT_MAX_WORKERS,
        fail_fast=False,
    ):
        if max_workers < 1:
            raise ValueError(f"max-workers must be at least 1, got {max_workers}")
        self._client = client
        self.scope = Scope(namespace, domain)
        self.max_workers = max_workers
        self.fail_fast = fail_fast

    @classmethod
    def from_config(
        cls,
        bucket_name,
        region=DEFAULT_REGION,
        namespace="",
        domain="",
        endpoint_url=None,
        path_style=False,
        static_credentials=False,
        access_key=None,
        secret_key=None,
        use_ssl=True,
        connect_timeout=60,
        read_timeout=60,
        page_size=1000,
        max_workers=bulk.DEFAULT_MAX_WORKERS,
        fail_fast=False,
    ):
        """Build the client and the handle from plain settings.

        Access key and secret are only used with ``static_credentials``;
        otherwise boto3's default credential chain applies.
        """
        if static_credentials and not (access_key and secret_key):
            raise ValueError("static credentials require access-key and secret-key")
        client = S3Client(
            bucket_name=bucket_name,
            endpoint_url=endpoint_url,
            region_name=region or DEFAULT_REGION,
            aws_access_key_id=access_key if static_credentials else None,
            aws_secret_access_key=secret_key if static_credentials else None,
            use_ssl=use_ssl,
            addressing_style="path" if path_style else "auto",
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            page_size=page_size,
        )
        return cls(
            client,
            namespace=namespace,
            domain=domain,
            max_workers=max_workers,
            fail_fast=fail_fast,
        )

    def __repr__(self):
        return f"<S3FS {self._client.bucket_name}:{self.scope.prefix or '/'}>"

    @property
    def client(self):
        return self._client

    # -- Listing --

    def list(self, path):
        return list_entries(self._client, self.scope, path)

    # -- Single objects --

    def makedir(self, path):
        self._client.put_empty(self.scope.to_key(as_directory(path)))

    def get(self, path):
        return self._client.get_object(self.scope.to_key(path))

    def read_bytes(self, path):
        body = self.get(path)
        try:
            return body.read()
        finally:
            body.close()

    def put(self, path, body, content_type=DEFAULT_CONTENT_TYPE, metadata=None):
        self._client.upload_fileobj(
            body, self.scope.to_key(path), content_type=content_type, metadata=metadata
        )

    def delete_one(self, path):
        self._client.delete_object(self.scope.to_key(path))

    def copy_one(self, src, dest, metadata=None):
        self._client.copy_object(
            self.scope.to_key(src), self.scope.to_key(dest), metadata
        )

    def move_one(self, src, dest):
        self.copy_one(src, dest)
        self.delete_one(src)

    def head(self, path):
        response = self._client.head_object(self.scope.to_key(path))
        if response is None:
            return None
        return ObjectInfo.from_head(response)

    def info(self, path):
        """Like ``head``, but any failure yields None."""
        try:
            return self.head(path)
        except S3OperationError as e:
            logger.debug("info for %s unavailable: %s", path, e)
            return None

    # -- Subtrees --

    def delete_bulk(self, prefix):
        return bulk.delete_tree(self._client, self.scope, prefix)

    def copy_bulk(self, prefix, dest, metadata=None):
        return bulk.copy_tree(
            self._client,
            self.scope,
            prefix,
            dest,
            metadata=metadata,
            max_workers=self.max_workers,
            fail_fast=self.fail_fast,
        )

    def move_bulk(self, prefix, dest):
        return bulk.move_tree(
            self._client,
            self.scope,
            prefix,
            dest,
            max_workers=self.max_workers,
            fail_fast=self.fail_fast,
        )

    # -- Dispatch on trailing slash --

    def delete(self, path):
        if path.endswith("/"):
            return self.delete_bulk(path)
        return self.delete_one(path)

    def copy(self, src, dest, metadata=None):
        if src.endswith("/"):
            return self.copy_bulk(src, dest, metadata)
        return self.copy_one(src, dest, metadata)

    def move(self, src, dest):
        if src.endswith("/"):
            return self.move_bulk(src, dest)
        return self.move_one(src, dest)

    # -- Existence --

    def path_exists(self, path):
        page = self._client.list_page(
            self.scope.to_key(path), delimiter=DELIMITER, max_keys=1
        )
        return page["key_count"] > 0

    def exact_path_exists(self, path):
        key = self.scope.to_key(path)
        for page in self._client.iter_pages(key, delimiter=DELIMITER):
            if any(obj["key"] == key for obj in page["objects"]):
                return True
        return False

    # -- Buckets --

    def create_bucket(self, name):
        self._client.create_bucket(name)
        logger.info("Created bucket %s", name)

    def delete_bucket(self, name):
        self._client.delete_bucket(name)
        logger.info("Deleted bucket %s", name)
