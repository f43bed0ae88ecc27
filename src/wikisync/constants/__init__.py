"""Configuration constants.

Re-exports all constants for convenient importing:
    from wikisync.constants import MAX_TOKENS, NO_NEW_COMMITS_MESSAGE
"""

from wikisync.constants.llm import *  # noqa: F403
from wikisync.constants.sync import *  # noqa: F403
