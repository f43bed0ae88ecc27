"""LLM client configuration.

Fallback parameters for LLM API calls, used when settings cannot be loaded.
They mirror the defaults in CONFIG_SCHEMA.
"""

# =============================================================================
# Generation Defaults
# =============================================================================
# MAX_TOKENS caps response length to control costs and ensure responses complete.
# ANALYSIS_TEMPERATURE is lower for structured output where consistency matters.

MAX_TOKENS = 8192
DEFAULT_TEMPERATURE = 0.7
ANALYSIS_TEMPERATURE = 0.3
