"""
SPARQL Naturalizer - natural-language questions to SPARQL over a DCAT catalog.

Retrieval-augmented generation against datos.gob.es, with a repair pass that
turns model completions into well-formed queries.
"""

__version__ = "0.1.0"

from naturalizer.config import (
    NaturalizerConfig,
    ConfigLoader,
    get_default_config,
)
from naturalizer.exceptions import (
    NaturalizerError,
    ConfigError,
    LLMError,
    LLMConnectionError,
    LLMAuthError,
    LLMGenerationError,
)
from naturalizer.generator import GenerationResult, SparqlGenerator
from naturalizer.llm_client import (
    AvailabilityStatus,
    BaseLLM,
    LLMResponse,
    OllamaLLM,
    OpenAICompatibleLLM,
    create_llm,
)
from naturalizer.prompt_builder import PromptBuilder

__all__ = [
    # Configuration
    "NaturalizerConfig",
    "ConfigLoader",
    "get_default_config",
    # LLM Client
    "BaseLLM",
    "OllamaLLM",
    "OpenAICompatibleLLM",
    "LLMResponse",
    "AvailabilityStatus",
    "create_llm",
    # Generation
    "PromptBuilder",
    "SparqlGenerator",
    "GenerationResult",
    # Exceptions
    "NaturalizerError",
    "ConfigError",
    "LLMError",
    "LLMConnectionError",
    "LLMAuthError",
    "LLMGenerationError",
]
