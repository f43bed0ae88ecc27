"""Propose a catalog delta from new commits."""

import json
import logging

from pydantic import TypeAdapter

from wikisync.constants import CATALOG_DELIMITER
from wikisync.db.catalog import CatalogNode
from wikisync.llm.invoker import AnalysisInvoker
from wikisync.repo.delta import VersionDelta
from wikisync.sync.catalog import CatalogProposal
from wikisync.sync.prompts import SYSTEM_PROMPT, get_catalog_update_prompt

logger = logging.getLogger(__name__)

CATALOG_PROPOSAL_SCHEMA = TypeAdapter(CatalogProposal)


def repository_label(address: str) -> str:
    """Repository address without a trailing ``.git``."""
    return address.removesuffix(".git")


class CatalogAnalyzer:
    """Asks the analysis model how the catalog should change."""

    def __init__(self, invoker: AnalysisInvoker):
        self.invoker = invoker

    async def propose(
        self,
        address: str,
        delta: VersionDelta,
        live_nodes: list[CatalogNode],
        file_tree: str,
    ) -> CatalogProposal:
        """Propose catalog changes for the commits in ``delta``.

        Args:
            address: Repository address, shown to the model.
            delta: Commits since the last processed revision.
            live_nodes: Current live catalog.
            file_tree: Rendered repository file tree.

        Returns:
            The proposed delta.
        """
        prompt = get_catalog_update_prompt(
            git_repository=repository_label(address),
            document_catalogue=json.dumps([n.to_dict() for n in live_nodes], indent=2),
            git_commit=delta.render_commit_prompt(),
            catalogue=file_tree,
        )
        logger.info(
            f"Analyzing {len(delta.commits)} commit(s) against {len(live_nodes)} catalog node(s)"
        )
        proposal = await self.invoker.invoke(
            prompt,
            CATALOG_PROPOSAL_SCHEMA,
            tag=CATALOG_DELIMITER,
            system_prompt=SYSTEM_PROMPT,
        )
        logger.info(
            f"Proposal: {len(proposal.delete_id)} deletion(s), {len(proposal.items)} top-level item(s)"
        )
        return proposal
