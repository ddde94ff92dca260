"""Error taxonomy shared by services and the HTTP layer."""


class StickRoomError(Exception):
    """Base class for every domain failure."""

    status_code = 500


class ValidationError(StickRoomError):
    """Malformed input to a local operation."""

    status_code = 400


class StorageError(StickRoomError):
    """Local session persistence could not be read or written."""

    status_code = 500


class AuthorizationError(StickRoomError):
    """Caller lacks rights for the requested operation."""

    status_code = 403


class NotFoundError(StickRoomError):
    status_code = 404


class ExpiredError(StickRoomError):
    """Invitation is past its expiry."""

    status_code = 410


class UsageLimitError(StickRoomError):
    """Invitation has been used as many times as allowed."""

    status_code = 410


class GatewayError(StickRoomError):
    """Backend store failure, propagated without retry."""

    status_code = 503
