"""Error taxonomy shared by the REST API and the web front end."""

from fastapi import status


class UserDeskError(Exception):
    """Base class for errors surfaced to callers as an HTTP status + message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(UserDeskError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "User not found"


class InvalidCredential(UserDeskError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Incorrect password"


class AccountInactive(UserDeskError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Account is inactive. Please contact an administrator"


class Unauthenticated(UserDeskError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid token"


class Forbidden(UserDeskError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You don't have permission to perform this action."


class DuplicateUsername(UserDeskError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Username already exists in the system"


class ValidationError(UserDeskError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid user data"


class StorageError(UserDeskError):
    """Reading or writing the user store failed."""

    default_detail = "An error occurred while accessing user data"
