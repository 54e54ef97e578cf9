class WorkTrackerError(Exception):
    """Base exception for all work tracker errors."""
    pass

class RecoverableError(WorkTrackerError):
    """An error that can be recovered from without data loss."""
    pass

class FatalError(WorkTrackerError):
    """An error that requires application termination or major intervention."""
    pass

class EntryValidationError(RecoverableError):
    """The requested change is not valid, nothing was modified."""
    pass

class EntryNotFoundError(RecoverableError):
    """No entry with the given ID."""
    pass

class AlreadyCompletedError(RecoverableError):
    """The entry is already marked as completed."""
    pass

class ParseError(RecoverableError):
    """Text could not be parsed, such as a malformed entry ID."""
    pass

class FileOperationError(RecoverableError):
    """File operation failed but can be retried."""
    pass

class MigrationNeededError(RecoverableError):
    """ Data is valid, but may need a migration """
    pass

class VersionMismatchError(MigrationNeededError):
    """The data file was written with a different schema version."""
    pass

class CorruptionError(FatalError):
    """Corrupted Data Error - from syntax errors in data formats, to just unknown data"""
    pass

class MigrationError(CorruptionError):
    """Data migration failed - data may be corrupted."""
    pass

class HomeDirectoryUnavailableError(FatalError):
    """The home directory, and with it the default data file, cannot be located."""
    pass
