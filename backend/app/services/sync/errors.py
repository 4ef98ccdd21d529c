"""
Job-level failures raised inside the sync engine.
"""


class SyncEngineError(Exception):
    """Base class for sync engine failures."""
    pass


class InternalDataLoadError(SyncEngineError):
    """Internal roster or attendance facts could not be read."""
    pass


class SyncStateError(SyncEngineError):
    """A sync job, item or hash cache write did not persist."""
    pass


class SyncJobNotFoundError(SyncEngineError):
    """No sync job exists with the requested id."""
    pass
