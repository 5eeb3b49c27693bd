from zope.interface import Attribute
from zope.interface import Interface


class IObjectStore(Interface):
    """Abstraction over S3-compatible object storage, addressed by raw key."""

    bucket_name = Attribute("Name of the bucket all operations target.")

    def list_page(prefix, delimiter=None, continuation_token=None, max_keys=None):
        """Return one listing page as a dict."""

    def iter_pages(prefix, delimiter=None):
        """Yield listing pages until the listing is exhausted."""

    def get_object(s3_key):
        """Return a readable stream for an object, or raise ObjectNotFound."""

    def upload_fileobj(fileobj, s3_key, content_type=None, metadata=None):
        """Upload a file-like object or bytes, overwriting the key."""

    def put_empty(s3_key):
        """Store a zero-length object."""

    def delete_object(s3_key):
        """Delete an object. Missing keys are not an error."""

    def delete_objects(s3_keys):
        """Delete a batch of keys, returning the keys the store refused."""

    def copy_object(src_key, dest_key, metadata=None):
        """Server-side copy; metadata, when given, replaces the source's."""

    def head_object(s3_key):
        """Return metadata dict for an S3 object, or None if not found."""

    def create_bucket(name, wait=True):
        """Create a bucket and wait until it exists."""

    def delete_bucket(name):
        """Delete an (empty) bucket."""


class IFileSystem(Interface):
    """Hierarchical namespace over one scope of an object store."""

    def list(path):
        """Return the entries directly below ``path``."""

    def makedir(path):
        """Create a directory marker."""

    def get(path):
        """Return a readable stream for a file."""

    def put(path, body, content_type="application/octet-stream", metadata=None):
        """Store a file."""

    def delete(path):
        """Delete a file, or a whole subtree when ``path`` ends in '/'."""

    def copy(src, dest, metadata=None):
        """Copy a file, or a whole subtree when ``src`` ends in '/'."""

    def move(src, dest):
        """Move a file, or a whole subtree when ``src`` ends in '/'."""

    def info(path):
        """Return ObjectInfo, or None if it cannot be fetched for any reason."""

    def head(path):
        """Return ObjectInfo, None if missing; other failures raise."""

    def path_exists(path):
        """True if any key starts with the mapped path."""

    def exact_path_exists(path):
        """True if an object with exactly the mapped key exists."""
