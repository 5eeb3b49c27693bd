"""Recursive delete, copy and move of a subtree.

A subtree is every key below a directory-shaped prefix. It is enumerated
page by page without a delimiter; pages are processed strictly in order
and the work of one page is finished before the next page is fetched.
"""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import wait
from scoped_s3fs.keys import as_directory
from scoped_s3fs.keys import parent_path
from scoped_s3fs.s3client import S3OperationError

import logging


logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 16


class BulkOperationError(S3OperationError):
    """At least one object of a bulk operation failed.

    ``failures`` lists ``(path, exception)`` pairs so callers can retry
    selectively.
    """

    def __init__(self, operation, failures):
        self.operation = operation
        self.failures = list(failures)
        super().__init__(
            f"S3 bulk {operation}: some files failed ({len(self.failures)})"
        )

    @property
    def failed_paths(self):
        return [path for path, _exc in self.failures]


def delete_tree(client, scope, prefix):
    """Delete every object below ``prefix``, one batch per page.

    Fails fast: a failed batch stops the operation before the next page.
    Returns the number of deleted keys.
    """
    physical = scope.to_key(prefix)
    deleted = 0
    for page in client.iter_pages(physical):
        keys = [obj["key"] for obj in page["objects"]]
        if not keys:
            continue
        try:
            refused = client.delete_objects(keys)
        except S3OperationError as e:
            raise BulkOperationError(
                "delete", [(scope.to_path(key), e) for key in keys]
            ) from e
        if refused:
            failures = [
                (scope.to_path(key), S3OperationError(f"S3 delete refused: {code}", code))
                for key, code in refused
            ]
            logger.warning(
                "Bulk delete of %s: %d key(s) refused", prefix, len(failures)
            )
            raise BulkOperationError("delete", failures)
        deleted += len(keys)
    logger.info("Bulk delete of %s removed %d object(s)", prefix, deleted)
    return deleted


def _copy_target(scope, key, base, dest):
    """Destination path of ``key`` when the subtree below ``base`` moves to ``dest``."""
    return dest + scope.to_path(key)[len(base) :]


def _check_destination(scope, prefix, dest):
    """Reject a destination that lies inside, or is, the source subtree.

    Copies written below the source would be listed and copied again on
    later pages, and a move would delete them with the source.
    """
    source = scope.to_key(as_directory(prefix))
    dest = as_directory(dest)
    new_root = scope.to_key(_copy_target(scope, source, parent_path(prefix), dest))
    if scope.to_key(dest).startswith(source) or new_root == source:
        raise ValueError(
            f"destination {dest!r} lies inside the source subtree {prefix!r}"
        )


def copy_tree(
    client,
    scope,
    prefix,
    dest,
    metadata=None,
    max_workers=DEFAULT_MAX_WORKERS,
    fail_fast=False,
):
    """Copy the subtree at ``prefix`` into the directory ``dest``.

    The subtree root keeps its name: copying ``/x/a/`` to ``/b/`` yields
    ``/b/a/...``. Directory markers are recreated as markers, other
    objects are copied server-side (``metadata`` replaces the source's).

    Without ``fail_fast`` every page is processed and all failures are
    reported together at the end. With it, the first page containing a
    failure ends the operation.
    """
    _check_destination(scope, prefix, dest)
    physical = scope.to_key(prefix)
    base = parent_path(prefix)
    dest = as_directory(dest)
    failures = []
    copied = 0

    def copy_key(key, target):
        if key.endswith("/"):
            client.put_empty(scope.to_key(as_directory(target)))
        else:
            client.copy_object(key, scope.to_key(target), metadata)
        logger.debug("Copied %s to %s", key, target)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        for page in client.iter_pages(physical):
            futures = {}
            for obj in page["objects"]:
                key = obj["key"]
                target = _copy_target(scope, key, base, dest)
                futures[executor.submit(copy_key, key, target)] = key
            wait(futures)

            page_failures = []
            for future, key in futures.items():
                exc = future.exception()
                if exc is None:
                    copied += 1
                    continue
                logger.warning("Bulk copy of %s failed: %s", key, exc)
                page_failures.append((scope.to_path(key), exc))
            failures.extend(page_failures)
            if page_failures and fail_fast:
                break

    if failures:
        raise BulkOperationError("copy", failures)
    logger.info("Bulk copy of %s to %s copied %d object(s)", prefix, dest, copied)
    return copied


def move_tree(
    client, scope, prefix, dest, max_workers=DEFAULT_MAX_WORKERS, fail_fast=False
):
    """Copy the subtree, then delete the source. Not atomic."""
    _check_destination(scope, prefix, dest)
    copied = copy_tree(
        client, scope, prefix, dest, max_workers=max_workers, fail_fast=fail_fast
    )
    delete_tree(client, scope, prefix)
    return copied
