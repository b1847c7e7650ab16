"""Custom exceptions for the SPARQL Naturalizer."""


class NaturalizerError(Exception):
    """Base exception for all naturalizer errors."""
    pass


class ConfigError(NaturalizerError):
    """Raised when configuration loading or validation fails."""
    pass


class LLMError(NaturalizerError):
    """Base exception for language model errors."""

    def __init__(self, message: str, provider: str = None):
        self.provider = provider
        super().__init__(message)


class LLMConnectionError(LLMError):
    """Raised when the model provider cannot be reached."""
    pass


class LLMAuthError(LLMError):
    """Raised when provider credentials are missing or rejected."""
    pass


class LLMGenerationError(LLMError):
    """Raised when generation fails."""
    pass
