"""Catalog reconciliation: merge a proposed catalog delta into the live tree.

A proposal has two parts:

- ``delete_id``: live nodes to remove. Their live descendants go with them.
- ``items``: a nested tree of nodes to write. ``type == "update"`` revises
  the live node carrying ``id``; anything else adds a new node.

Node identities are never reused. A revised node is written under a fresh
identity that records ``replaces_id``, the superseded node is soft-deleted and
its live children move under the replacement. The whole proposal is validated
before anything is written, and the writes of one reconciliation share a
single transaction.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from wikisync.db.catalog import CatalogNode, CatalogStore
from wikisync.db.connection import utc_now

logger = logging.getLogger(__name__)


class CatalogStructureError(Exception):
    """Raised when a proposal references nodes that do not exist."""

    pass


class ProposedCatalogNode(BaseModel):
    """One node of a proposed catalog tree."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default="", validation_alias=AliasChoices("id", "Id", "ID"))
    title: str = ""
    name: str = ""
    type: str = "add"
    prompt: Optional[str] = None
    parent_id: Optional[str] = None
    children: list["ProposedCatalogNode"] = Field(default_factory=list)

    @field_validator("id", "title", "name", "type", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("children", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return [] if value is None else value

    @field_validator("parent_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        return value or None

    @model_validator(mode="after")
    def _require_label(self) -> "ProposedCatalogNode":
        if not self.title.strip() and not self.name.strip():
            raise ValueError("catalog node needs a title or a name")
        return self

    @property
    def is_update(self) -> bool:
        return self.type.strip().lower() == "update"

    @property
    def slug(self) -> str:
        """Title with all whitespace removed, falling back to the name."""
        return "".join(self.title.split()) or "".join(self.name.split())


class CatalogProposal(BaseModel):
    """A proposed catalog delta."""

    model_config = ConfigDict(extra="ignore")

    delete_id: list[str] = Field(default_factory=list)
    items: list[ProposedCatalogNode] = Field(default_factory=list)

    @field_validator("delete_id", "items", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return [] if value is None else value

    @property
    def is_empty(self) -> bool:
        return not self.delete_id and not self.items


@dataclass
class ReconcileResult:
    """What a reconciliation changed."""

    nodes: list[CatalogNode] = field(default_factory=list)  # Inserted, parents first
    added: list[CatalogNode] = field(default_factory=list)
    updated: list[CatalogNode] = field(default_factory=list)
    deleted_ids: list[str] = field(default_factory=list)
    reordered: int = 0


class CatalogReconciler:
    """Applies catalog proposals to a repository's persisted catalog."""

    def __init__(self, store: CatalogStore):
        self.store = store

    def reconcile(
        self,
        repository_id: str,
        document_id: str,
        proposal: CatalogProposal,
        when: Optional[datetime] = None,
    ) -> ReconcileResult:
        """Merge ``proposal`` into the live catalog.

        Args:
            repository_id: Repository whose catalog is reconciled.
            document_id: Document the new nodes belong to.
            proposal: Proposed delta.
            when: Deletion and creation timestamp (defaults to now).

        Returns:
            The nodes added, revised and deleted.

        Raises:
            CatalogStructureError: If the proposal deletes, revises or attaches
                to a node that is not live. Nothing is written in that case.
        """
        now = when or utc_now()
        live = {node.id: node for node in self.store.live_nodes(repository_id)}
        children_of: dict[Optional[str], list[CatalogNode]] = defaultdict(list)
        for node in live.values():
            children_of[node.parent_id].append(node)

        def descendants(node_id: str) -> set[str]:
            found: set[str] = set()
            stack = [node_id]
            while stack:
                for child in children_of.get(stack.pop(), []):
                    if child.id not in found:
                        found.add(child.id)
                        stack.append(child.id)
            return found

        # Deletions, with live descendants
        deleted: set[str] = set()
        for node_id in proposal.delete_id:
            if node_id not in live:
                raise CatalogStructureError(f"Cannot delete unknown catalog node {node_id!r}")
            deleted.add(node_id)
            deleted |= descendants(node_id)

        # Plan inserts depth-first so parents precede children
        planned: list[CatalogNode] = []
        replaced: dict[str, str] = {}
        result = ReconcileResult()

        def plan(items: list[ProposedCatalogNode], parent_id: Optional[str], top_level: bool):
            for item in items:
                if item.is_update:
                    if not item.id or item.id not in live:
                        raise CatalogStructureError(
                            f"Cannot update unknown catalog node {item.id!r}"
                        )
                    if item.id in deleted:
                        raise CatalogStructureError(
                            f"Catalog node {item.id!r} is both deleted and updated"
                        )
                    if item.id in replaced:
                        raise CatalogStructureError(
                            f"Catalog node {item.id!r} is updated more than once"
                        )

                node_parent = parent_id
                if top_level:
                    if item.parent_id:
                        if item.parent_id not in live or item.parent_id in deleted:
                            raise CatalogStructureError(
                                f"Catalog node {item.slug!r} is attached to unknown parent "
                                f"{item.parent_id!r}"
                            )
                        if item.is_update and (
                            item.parent_id == item.id or item.parent_id in descendants(item.id)
                        ):
                            raise CatalogStructureError(
                                f"Catalog node {item.id!r} cannot be moved under itself"
                            )
                        node_parent = item.parent_id
                    elif item.is_update:
                        node_parent = live[item.id].parent_id

                node = CatalogNode(
                    id=uuid.uuid4().hex,
                    repository_id=repository_id,
                    document_id=document_id,
                    name=item.name or item.title,
                    slug=item.slug,
                    description=item.slug,
                    parent_id=node_parent,
                    prompt=item.prompt,
                    replaces_id=item.id if item.is_update else None,
                    created_at=now,
                )
                if item.is_update:
                    replaced[item.id] = node.id
                    result.updated.append(node)
                else:
                    result.added.append(node)
                planned.append(node)
                plan(item.children, node.id, False)

        plan(proposal.items, None, True)

        # Attach to replacements rather than superseded nodes
        for node in planned:
            if node.parent_id in replaced:
                node.parent_id = replaced[node.parent_id]

        removed = deleted | set(replaced)
        survivors = {node_id: node for node_id, node in live.items() if node_id not in removed}
        final_parent = {
            node_id: replaced.get(node.parent_id, node.parent_id)
            for node_id, node in survivors.items()
        }

        # Scopes whose membership changed
        scopes: set[Optional[str]] = {node.parent_id for node in planned}
        scopes |= set(replaced.values())
        for node_id in removed:
            old_parent = live[node_id].parent_id
            scope = replaced.get(old_parent, old_parent)
            if scope not in removed:
                scopes.add(scope)

        survivors_in: dict[Optional[str], list[CatalogNode]] = defaultdict(list)
        for node_id, parent in final_parent.items():
            if parent in scopes:
                survivors_in[parent].append(survivors[node_id])

        reorders: list[tuple[str, int]] = []
        for scope in scopes:
            order = 0
            for node in planned:
                if node.parent_id == scope:
                    node.order = order
                    order += 1
            for node in sorted(survivors_in.get(scope, []), key=lambda n: (n.order, n.name)):
                if node.order != order:
                    reorders.append((node.id, order))
                order += 1

        with self.store.db.transaction():
            self.store.soft_delete(repository_id, removed, now)
            self.store.insert_many(planned)
            for old_id, new_id in replaced.items():
                self.store.reparent(repository_id, old_id, new_id)
            if reorders:
                self.store.set_orders(reorders)

        result.nodes = planned
        result.deleted_ids = sorted(deleted)
        result.reordered = len(reorders)
        logger.info(
            f"Reconciled catalog for {repository_id}: {len(result.added)} added, "
            f"{len(result.updated)} updated, {len(deleted)} deleted"
        )
        return result
