import re


_SEGMENT_RE = re.compile(r"[a-zA-Z0-9._/-]*")


def _clean_segment(name, value):
    value = value.strip("/") if value else ""
    if not value:
        return ""
    if not _SEGMENT_RE.fullmatch(value):
        raise ValueError(
            f"{name} contains invalid characters: {value!r}. "
            "Only alphanumeric characters, dots, hyphens, underscores, "
            "and slashes are allowed."
        )
    if ".." in value:
        raise ValueError(f"{name} must not contain '..': {value!r}")
    return value


class Scope:
    """Maps virtual paths of one tenant onto physical object keys.

    Keys look like ``[namespace/][domain/]<path without leading slash>``.
    Virtual paths are not normalized: ``/a//b`` and ``/a/../b`` map to
    literal keys below the scope prefix.
    """

    def __init__(self, namespace="", domain=""):
        self.namespace = _clean_segment("namespace", namespace)
        self.domain = _clean_segment("domain", domain)
        prefix = ""
        if self.namespace:
            prefix += self.namespace + "/"
        if self.domain:
            prefix += self.domain + "/"
        self.prefix = prefix

    def __repr__(self):
        return f"<Scope {self.prefix!r}>"

    def __eq__(self, other):
        if not isinstance(other, Scope):
            return NotImplemented
        return self.prefix == other.prefix

    def __hash__(self):
        return hash(self.prefix)

    def to_key(self, path):
        return self.prefix + path.removeprefix("/")

    def relative(self, key):
        """Return ``key`` without the scope prefix (no leading slash)."""
        if not key.startswith(self.prefix):
            raise ValueError(f"key {key!r} is outside of scope {self.prefix!r}")
        return key[len(self.prefix) :]

    def to_path(self, key):
        return "/" + self.relative(key)


def parent_path(path):
    """Parent directory of a virtual path, always ending in ``/``.

    ``/x/a/``, ``/x/a`` and ``x/a/`` all give ``/x/``; the root is its own
    parent.
    """
    if not path.startswith("/"):
        path = "/" + path
    trimmed = path.rstrip("/")
    if "/" not in trimmed:
        return "/"
    return trimmed[: trimmed.rindex("/") + 1] or "/"


def as_directory(path):
    if path.endswith("/"):
        return path
    return path + "/"
