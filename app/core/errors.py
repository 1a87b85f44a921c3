class PortalError(Exception):
    """Base for failures surfaced by the domain operations."""

    code = "INTERNAL_SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(PortalError):
    code = "NOT_FOUND"
    status_code = 404


class DuplicateKeyError(PortalError):
    code = "CONFLICT"
    status_code = 409


class StoreFailure(PortalError):
    pass
