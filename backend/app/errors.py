from typing import Optional


class AppError(Exception):
    """
    Base for failures a handler maps to an HTTP status + `{"error": message}` body.

    `tag` is the event name used when the failure is logged.
    """

    status_code = 500
    message = "internal server error"
    tag = "app.error"

    def __init__(self, message: Optional[str] = None, *, detail: Optional[str] = None):
        self.message = message or self.message
        # Internal context for logs; never sent to clients in production.
        self.detail = detail
        super().__init__(self.message)


class Unauthenticated(AppError):
    status_code = 401
    message = "authentication required"
    tag = "auth.unauthenticated"


class Forbidden(AppError):
    status_code = 403
    message = "insufficient permissions"
    tag = "auth.forbidden"


class NotFound(AppError):
    status_code = 404
    message = "not found"
    tag = "not_found"


class UserNotFound(NotFound):
    message = "user not found"
    tag = "auth.user_not_found"


class InvalidInput(AppError):
    status_code = 400
    message = "invalid input"
    tag = "invalid_input"


class InvalidPath(InvalidInput):
    message = "invalid path"
    tag = "media.invalid_path"


class UpstreamUnreachable(AppError):
    status_code = 502
    message = "upstream service unreachable"
    tag = "upstream.unreachable"


class QueryFailed(AppError):
    status_code = 500
    message = "internal server error"
    tag = "db.query_failed"


class ConfigurationError(AppError):
    status_code = 500
    message = "server configuration incomplete"
    tag = "config.error"
