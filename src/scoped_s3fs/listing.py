from dataclasses import dataclass

import enum
import logging


logger = logging.getLogger(__name__)

DELIMITER = "/"


class EntryKind(enum.IntEnum):
    DIRECTORY = 1
    FILE = 2


@dataclass(frozen=True)
class Entry:
    """One listing result. ``path`` is virtual, never the physical key."""

    name: str
    path: str
    kind: EntryKind
    size: int = 0

    @property
    def is_dir(self):
        return self.kind is EntryKind.DIRECTORY

    def as_dict(self):
        data = {"name": self.name, "path": self.path, "type": int(self.kind)}
        if self.kind is EntryKind.FILE:
            data["size"] = self.size
        return data


@dataclass(frozen=True)
class ObjectInfo:
    size: int
    metadata: dict
    content_type: str = None
    etag: str = None
    last_modified: object = None

    @classmethod
    def from_head(cls, response):
        return cls(
            size=response.get("ContentLength", 0),
            metadata=dict(response.get("Metadata", {})),
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
            last_modified=response.get("LastModified"),
        )


def list_entries(client, scope, path):
    """List the direct children of ``path`` within ``scope``.

    Common prefixes become directories, object keys become files. The
    listed prefix itself and the scope root are never reported as their
    own children. Any page failure propagates; there is no partial result.
    """
    prefix = scope.to_key(path)
    root = scope.prefix
    entries = []
    pages = 0
    for page in client.iter_pages(prefix, delimiter=DELIMITER):
        pages += 1
        for common_prefix in page["common_prefixes"]:
            if common_prefix in (prefix, root):
                continue
            entries.append(
                Entry(
                    name=common_prefix.split(DELIMITER)[-2],
                    path=scope.to_path(common_prefix),
                    kind=EntryKind.DIRECTORY,
                )
            )
        for obj in page["objects"]:
            key = obj["key"]
            if key in (prefix, root):
                continue
            entries.append(
                Entry(
                    name=key.split(DELIMITER)[-1],
                    path=scope.to_path(key),
                    kind=EntryKind.FILE,
                    size=obj["size"],
                )
            )
    logger.debug(
        "Listed %s: %d entries in %d page(s)", prefix or "<root>", len(entries), pages
    )
    return entries
