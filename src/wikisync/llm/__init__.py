"""LLM client abstraction and the analysis retry envelope."""

from wikisync.llm.client import (
    LLMAuthenticationError,
    LLMClient,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    create_llm_client,
)
from wikisync.llm.invoker import (
    AnalysisInvoker,
    ExtractionError,
    extract_payload,
)

__all__ = [
    "AnalysisInvoker",
    "ExtractionError",
    "LLMAuthenticationError",
    "LLMClient",
    "LLMConnectionError",
    "LLMError",
    "LLMRateLimitError",
    "create_llm_client",
    "extract_payload",
]
