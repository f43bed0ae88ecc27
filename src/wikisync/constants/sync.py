"""Sync pipeline constants.

Delimiters the analysis prompts ask the model to wrap its answers in, and the
messages written to sync records for outcomes that are not exceptions.
"""

# =============================================================================
# Response Delimiters
# =============================================================================

CATALOG_DELIMITER = "document_structure"
CHANGELOG_DELIMITER = "changelog"

# =============================================================================
# Sync Record Messages
# =============================================================================

NO_NEW_COMMITS_MESSAGE = "No new commits found during sync"
INTERRUPTED_MESSAGE = "Interrupted by server restart"

# =============================================================================
# Timestamps
# =============================================================================
# Commit times are rendered into prompts in this format.

COMMIT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
