"""Custom exceptions for apidiff."""


class ApiDiffError(Exception):
    """Base exception for apidiff errors."""
    pass


class ValidationError(ApiDiffError, ValueError):
    """Raised when engine input validation fails."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(ApiDiffError):
    """Raised when configuration is invalid."""
    def __init__(self, key: str, message: str):
        super().__init__(f"Invalid configuration '{key}': {message}")
        self.key = key
        self.message = message


class DocumentParseError(ApiDiffError):
    """Raised when a document cannot be parsed at all."""
    def __init__(self, location: str, reason: str, line: int = None, column: int = None):
        super().__init__(f"Cannot parse document '{location}': {reason}")
        self.location = location
        self.reason = reason
        self.line = line
        self.column = column


class DocumentError(ApiDiffError):
    """Raised by the strict diagnostic policy when a document has issues."""
    def __init__(self, location: str, issues: list):
        joined = ", ".join(str(issue) for issue in issues)
        super().__init__(f'Error reading file "{location}". Error: {joined}')
        self.location = location
        self.issues = list(issues)
