from scoped_s3fs.bulk import BulkOperationError
from scoped_s3fs.fs import S3FS
from scoped_s3fs.keys import Scope
from scoped_s3fs.listing import Entry
from scoped_s3fs.listing import EntryKind
from scoped_s3fs.listing import ObjectInfo
from scoped_s3fs.s3client import ObjectNotFound
from scoped_s3fs.s3client import S3Client
from scoped_s3fs.s3client import S3OperationError


__all__ = [
    "BulkOperationError",
    "Entry",
    "EntryKind",
    "ObjectInfo",
    "ObjectNotFound",
    "S3Client",
    "S3FS",
    "S3OperationError",
    "Scope",
]
