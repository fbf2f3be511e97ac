"""
Error taxonomy for the sync tool.

Setup errors end the run before any upload work starts. Transport errors are
confined to the file being uploaded. Cache persistence errors are reported
but never change the outcome of uploads that already happened.
"""


class SyncError(Exception):
    """Base class for sync tool errors."""


class SetupError(SyncError):
    """Fatal problem found before the upload pass (bad root, login, manifest)."""


class AuthenticationError(SetupError):
    """The service rejected the email address / password combination."""


class TransportError(SyncError):
    """A single request failed at the HTTP layer."""


class CachePersistenceError(SyncError):
    """The hash cache could not be written back to disk."""
