"""Oplog subsystem exceptions."""


class OplogError(Exception):
    """Base class for oplog errors."""


class ReplayMismatchError(OplogError):
    """Recorded entry is missing, corrupt or belongs to a different function."""


class OplogValidationError(OplogError):
    """Oplog file failed schema or version validation."""


class OplogChecksumError(OplogError):
    """Oplog file checksum mismatch."""
