from __future__ import annotations


class BloodConnectError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500


class InvalidCriteria(BloodConnectError):
    status_code = 400


class InvalidRequest(BloodConnectError):
    status_code = 400


class DonorNotFound(BloodConnectError):
    status_code = 404


class RequestNotFound(BloodConnectError):
    status_code = 404


class StoreUnavailable(BloodConnectError):
    status_code = 503


class NotificationError(BloodConnectError):
    """A single SMS or call could not be delivered.

    Raised by notifiers and recorded per recipient by the dispatcher; it is
    never returned to an HTTP caller.
    """

    status_code = 502

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
