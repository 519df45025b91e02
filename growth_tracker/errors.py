"""Error taxonomy shared by the engine, the local store and the sync layer.

Z-scores that cannot be computed are not errors: they surface as ``None``.
Remote failures never escape the sync layer; they travel as
:class:`RemoteUnavailable` inside an ``Err`` result and trigger the local path.
"""


class GrowthTrackerError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(GrowthTrackerError):
    """Bad input shape or range; blocks submission."""


class InvalidDateError(ValidationError):
    """A date failed to parse or is out of the accepted range."""


class NotFoundError(GrowthTrackerError):
    """A child or record is absent."""


class StorageError(GrowthTrackerError):
    """Local persistence failed to read or write."""


class RemoteUnavailable(GrowthTrackerError):
    """Network or HTTP failure while talking to the backend."""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}

    @property
    def server_message(self):
        return self.payload.get("message") or self.payload.get("error") or str(self)
