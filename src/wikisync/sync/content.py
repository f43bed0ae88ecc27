"""Hand-off point to whatever writes documentation pages for catalog nodes."""

import logging
from abc import ABC, abstractmethod

from wikisync.db.catalog import CatalogNode
from wikisync.db.repositories import RepositoryRecord

logger = logging.getLogger(__name__)


class ContentGenerator(ABC):
    """Writes page content for newly added or revised catalog nodes."""

    @abstractmethod
    async def generate(
        self, nodes: list[CatalogNode], file_tree: str, repository: RepositoryRecord
    ) -> None:
        """Produce content for ``nodes``.

        Args:
            nodes: Nodes inserted by this sync cycle, parents first.
            file_tree: Rendered repository file tree.
            repository: Repository being synchronized.
        """
        pass


class PendingContentGenerator(ContentGenerator):
    """Leaves page generation to a later process and only records the hand-off."""

    async def generate(
        self, nodes: list[CatalogNode], file_tree: str, repository: RepositoryRecord
    ) -> None:
        if not nodes:
            return
        names = ", ".join(node.name for node in nodes[:10])
        more = f" and {len(nodes) - 10} more" if len(nodes) > 10 else ""
        logger.info(f"{len(nodes)} page(s) pending for {repository.name}: {names}{more}")
