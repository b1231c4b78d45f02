"""Custom exceptions for openfm-api."""


class OpenFMAPIException(Exception):
    """Base exception for openfm-api."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ReportError(OpenFMAPIException):
    """Raised when a query report cannot be produced."""

    pass


class UnknownReportError(ReportError):
    """Raised when the report discriminator is missing or unknown."""

    status_code = 400


class ConfigWriteError(OpenFMAPIException):
    """Raised when a station configuration write is rejected or fails."""

    pass


class MethodNotAllowedError(ConfigWriteError):
    """Raised when the config endpoint is called without write intent."""

    status_code = 405


class AuthenticationError(ConfigWriteError):
    """Raised when the setup password does not match."""

    status_code = 401


class ConfigValidationError(ConfigWriteError):
    """Raised when submitted station fields fail validation."""

    status_code = 400

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class DatabaseError(OpenFMAPIException):
    """Raised when database operations fail."""

    pass


class ConfigurationError(OpenFMAPIException):
    """Raised when the configured database URL cannot be used."""

    pass
