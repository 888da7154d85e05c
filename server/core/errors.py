"""Caption pipeline exception hierarchy."""


class CaptionPipelineError(Exception):
    """Base exception for all caption pipeline errors."""


class StoreUnavailableError(CaptionPipelineError):
    """The record store could not be reached or rejected the operation."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"[{operation}] {message}")


class ConfigurationError(CaptionPipelineError):
    """Invalid or incomplete service configuration."""
