from typing import Any, Optional


class AppException(Exception):
    """Base exception for all application-specific errors."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: Optional[Any] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details is None:
            return self.message
        return f"{self.message}: {self.details}"


class ValidationException(AppException):
    """Exception raised when client input is rejected."""

    def __init__(self, message: str = "Validation failed", details: Optional[Any] = None):
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class PaymentGatewayError(AppException):
    """The M-Pesa API could not be reached or returned an unusable answer."""

    def __init__(self, message: str = "Payment initiation failed", details: Optional[Any] = None):
        super().__init__(
            code="PAYMENT_GATEWAY_ERROR",
            message=message,
            status_code=500,
            details=details,
        )


class InvalidCallbackError(AppException):
    """Payment callback body is structurally unusable."""

    def __init__(self, message: str = "Invalid callback", details: Optional[Any] = None):
        super().__init__(
            code="INVALID_CALLBACK",
            message=message,
            status_code=400,
            details=details,
        )


class ControllerUnavailableError(AppException):
    """No session to the RouterOS API could be established."""

    def __init__(self, message: str = "Router is unreachable", details: Optional[Any] = None):
        super().__init__(
            code="CONTROLLER_UNAVAILABLE",
            message=message,
            status_code=503,
            details=details,
        )


class ControllerCommandError(AppException):
    """A RouterOS API command failed."""

    def __init__(self, message: str = "Router command failed", details: Optional[Any] = None):
        super().__init__(
            code="CONTROLLER_COMMAND_ERROR",
            message=message,
            status_code=502,
            details=details,
        )
