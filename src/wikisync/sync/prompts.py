"""Prompt templates for incremental catalog and changelog analysis."""

from dataclasses import dataclass
from typing import Any


@dataclass
class PromptTemplate:
    """A template for generating prompts with variable substitution."""

    template: str

    def render(self, **kwargs: Any) -> str:
        """Render the template with the given variables.

        Raises:
            KeyError: If a required variable is missing.
        """
        return self.template.format(**kwargs)


# =============================================================================
# System Prompt
# =============================================================================

SYSTEM_PROMPT = """You are a technical documentation expert who maintains the table of
contents and change history of a repository's documentation. Only describe what
the commits and files actually show, and always answer in the exact output
format requested."""


# =============================================================================
# Catalog Update Template
# =============================================================================

# Literal JSON braces are doubled for str.format
CATALOG_UPDATE_TEMPLATE = PromptTemplate(
    """The repository {git_repository} has new commits since its documentation
was last generated. Decide how the documentation catalog must change.

## Current Catalog
```json
{document_catalogue}
```

## New Commits
{git_commit}

## Repository Files
```
{catalogue}
```

---

Return the catalog changes as JSON inside <document_structure></document_structure> tags:

<document_structure>
{{
  "delete_id": ["<id of a catalog entry that no longer applies>"],
  "items": [
    {{
      "id": "<existing id for an update, empty for a new entry>",
      "title": "<short-identifier>",
      "name": "<Display Name>",
      "type": "add | update",
      "prompt": "<instructions for writing this section>",
      "parent_id": "<optional id of an existing entry to add under>",
      "children": []
    }}
  ]
}}
</document_structure>

Rules:
1. Only reference ids that appear in the current catalog
2. Leave "items" empty if no entry needs to be added or revised
3. List children in the order they should appear"""
)


# =============================================================================
# Changelog Template
# =============================================================================

CHANGELOG_TEMPLATE = PromptTemplate(
    """Summarize the recent history of the repository {git_repository}
(branch {git_branch}) as changelog entries.

## README
{readme}

## Commits
{commit_message}

---

Group related commits and write one entry per notable change. Return a JSON
array inside <changelog></changelog> tags:

<changelog>
[
  {{"date": "YYYY-MM-DD HH:MM:SS", "title": "<short title>", "description": "<what changed and why it matters>"}}
]
</changelog>"""
)


# =============================================================================
# Repository Question Template
# =============================================================================

ASK_REPOSITORY_TEMPLATE = PromptTemplate(
    """Answer a question about the repository "{repo_name}" using its
documentation catalog and README.

## Catalog
{catalog}

## README
{readme}

## Question
{question}

---

Answer concisely in Markdown. If the catalog and README do not cover the
question, say so instead of guessing."""
)


def get_catalog_update_prompt(
    git_repository: str, document_catalogue: str, git_commit: str, catalogue: str
) -> str:
    """Build the catalog-update analysis prompt."""
    return CATALOG_UPDATE_TEMPLATE.render(
        git_repository=git_repository,
        document_catalogue=document_catalogue,
        git_commit=git_commit,
        catalogue=catalogue,
    )


def get_changelog_prompt(
    git_repository: str, git_branch: str, readme: str, commit_message: str
) -> str:
    """Build the changelog analysis prompt."""
    return CHANGELOG_TEMPLATE.render(
        git_repository=git_repository,
        git_branch=git_branch,
        readme=readme or "(no README)",
        commit_message=commit_message,
    )
