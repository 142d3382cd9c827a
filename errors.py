# errors.py - Error types answered as JSON by the API


class PortalError(Exception):
    """Error with an HTTP status, rendered as {"error": message}"""
    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequest(PortalError):
    status_code = 400


class Unauthorized(PortalError):
    status_code = 401

    def __init__(self, message='Unauthorized'):
        super().__init__(message)


class Forbidden(PortalError):
    status_code = 403


class NotFound(PortalError):
    status_code = 404


class Conflict(PortalError):
    status_code = 409


class PermissionCheckFailed(PortalError):
    status_code = 500

    def __init__(self, message='Error verifying permissions'):
        super().__init__(message)
