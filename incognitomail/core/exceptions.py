"""
Custom Exceptions

Application-specific exceptions with error codes and messages.

Every error a caller can receive for a command is one of these; store and
operating system failures propagate as their own exception types.
"""

from typing import Optional, Any


class IncognitoMailException(Exception):
    """
    Base exception for all IncognitoMail errors.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "internal_error",
        detail: Optional[Any] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.detail = detail
        super().__init__(self.message)


# ===================================
# Validation
# ===================================

class EmptySecretException(IncognitoMailException):
    """
    Raised when an operation needs a secret but got an empty one.
    """

    def __init__(self, detail: Optional[Any] = None):
        super().__init__(
            message="empty account secret",
            status_code=422,
            error_code="empty_secret",
            detail=detail,
        )


class EmptyTargetException(IncognitoMailException):
    """
    Raised when an account is created without a target address.
    """

    def __init__(self, detail: Optional[Any] = None):
        super().__init__(
            message="empty account target",
            status_code=422,
            error_code="empty_target",
            detail=detail,
        )


class EmptyHandleException(IncognitoMailException):
    def __init__(self, detail: Optional[Any] = None):
        super().__init__(
            message="empty handle",
            status_code=422,
            error_code="empty_handle",
            detail=detail,
        )


class EmptyCommandException(IncognitoMailException):
    """
    Raised when the server receives an empty command.
    """

    def __init__(self, detail: Optional[Any] = None):
        super().__init__(
            message="empty command received",
            status_code=400,
            error_code="empty_command",
            detail=detail,
        )


class UnknownCommandException(IncognitoMailException):
    """
    Raised when the server receives an unknown command verb.
    """

    def __init__(self, command: str, detail: Optional[Any] = None):
        self.command = command
        super().__init__(
            message="unknown command received",
            status_code=400,
            error_code="unknown_command",
            detail=detail,
        )


class WrongCommandException(IncognitoMailException):
    """
    Raised when a known command is malformed.
    """

    def __init__(self, command: str, detail: Optional[Any] = None):
        self.command = command
        super().__init__(
            message="wrong command usage",
            status_code=400,
            error_code="wrong_command",
            detail=detail,
        )


# ===================================
# Not found / conflicts
# ===================================

class AccountNotFoundException(IncognitoMailException):
    """
    Raised when an action requires an account to exist, but it wasn't found.
    """

    def __init__(self, detail: Optional[Any] = None):
        super().__init__(
            message="account not found",
            status_code=404,
            error_code="account_not_found",
            detail=detail,
        )


class AccountExistsException(IncognitoMailException):
    """
    Raised when creating an account with a secret that is already taken.
    """

    def __init__(self, detail: Optional[Any] = None):
        super().__init__(
            message="account already exists",
            status_code=409,
            error_code="account_exists",
            detail=detail,
        )


class HandleExistsException(IncognitoMailException):
    """
    Raised when creating a handle that already exists under any account.
    """

    def __init__(self, handle: str, detail: Optional[Any] = None):
        self.handle = handle
        super().__init__(
            message="handle already exists",
            status_code=409,
            error_code="handle_exists",
            detail=detail,
        )


# ===================================
# Permissions
# ===================================

class InvalidPermissionException(IncognitoMailException):
    """
    Raised when a command arrived through a transport not allowed to run it.
    """

    def __init__(self, source: str, detail: Optional[Any] = None):
        self.source = source
        super().__init__(
            message="invalid permission to do this",
            status_code=403,
            error_code="invalid_permission",
            detail=detail,
        )


# ===================================
# External systems
# ===================================

class MailSystemException(IncognitoMailException):
    """
    Raised when the mail system map could not be updated or rebuilt.
    """

    def __init__(self, message: str = "mail system update failed", detail: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=502,
            error_code="mail_system_error",
            detail=detail,
        )


# ===================================
# Lifecycle
# ===================================

class ServerNotStartedException(IncognitoMailException):
    """
    Raised when an action expects a running server.
    """

    def __init__(self, detail: Optional[Any] = None):
        super().__init__(
            message="server not started",
            status_code=503,
            error_code="server_not_started",
            detail=detail,
        )


class LockFileException(IncognitoMailException):
    """
    Raised when the singleton lock file cannot be acquired or released.
    """

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="lock_file_error",
            detail=detail,
        )


class ListenerException(IncognitoMailException):
    """
    Raised when a listener fails to start serving, e.g. the port is taken.
    """

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="listener_error",
            detail=detail,
        )


class InvalidConfigException(IncognitoMailException):
    """
    Raised when loading a configuration with invalid values.
    """

    def __init__(self, detail: Optional[Any] = None):
        super().__init__(
            message="invalid configuration values",
            status_code=500,
            error_code="invalid_config",
            detail=detail,
        )
