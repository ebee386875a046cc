"""Integration-specific exceptions."""


class IntegrationError(Exception):
    """Base exception for integration errors."""

    pass


class ConfigurationError(IntegrationError):
    """Raised when integration or mapping configuration is invalid."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class InvalidSourcePathError(ConfigurationError):
    """Raised when a mapping's source path is not in the source field catalog."""

    def __init__(self, path: str):
        super().__init__(f"Unknown source field: {path!r}", field="source_field")
        self.path = path


class MappingValidationError(IntegrationError):
    """Raised when a required mapping resolves to no value."""

    def __init__(self, target_field: str, source_field: str):
        super().__init__(
            f"Required field {target_field!r} resolved to no value (source: {source_field})"
        )
        self.target_field = target_field
        self.source_field = source_field


class ApplicationNotFoundError(IntegrationError):
    """Raised when the record source has no application with the given ID."""

    def __init__(self, application_id: str):
        super().__init__(f"Application not found: {application_id}")
        self.application_id = application_id
