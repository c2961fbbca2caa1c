"""Errors raised by the document version store.

Lookups that callers expect to miss (get, get_version) return None instead;
these are for mutations that cannot continue without their target.
"""


class DocumentError(Exception):
    """Base class for document store errors."""


class DocumentNotFoundError(DocumentError):
    """No document with that id is owned by the caller."""


class VersionNotFoundError(DocumentError):
    """No version with that id belongs to a document owned by the caller."""


class VersionConflictError(DocumentError):
    """The document moved on since it was read, or a version number was taken."""


class DocumentLockTimeoutError(DocumentError):
    """The per-document edit lock could not be acquired in time."""
