"""Document catalog persistence.

Catalog nodes form a tree through ``parent_id`` pointers rather than embedded
children, so a sync cycle can rewrite one branch without touching the rest.
Nodes are never physically removed: deletion sets ``is_deleted`` and
``deleted_at``, and every read of the "live" catalog filters those rows out.
"""

from __future__ import annotations

import sqlite3
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from wikisync.db.connection import Database, format_timestamp, parse_timestamp, utc_now


@dataclass
class CatalogNode:
    """One entry of a repository's documentation table of contents."""

    id: str
    repository_id: str
    document_id: str
    name: str
    slug: str
    description: str = ""
    parent_id: Optional[str] = None
    prompt: Optional[str] = None
    order: int = 0
    replaces_id: Optional[str] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Serialize the fields an analysis prompt needs."""
        return {
            "id": self.id,
            "name": self.name,
            "title": self.slug,
            "description": self.description,
            "parent_id": self.parent_id,
            "order": self.order,
            "prompt": self.prompt,
        }


@dataclass
class CatalogTreeNode:
    """A live catalog node with its live children, sorted by order."""

    node: CatalogNode
    children: list["CatalogTreeNode"] = field(default_factory=list)

    def walk(self) -> Iterable[CatalogNode]:
        """Yield this node and its descendants depth-first."""
        yield self.node
        for child in self.children:
            yield from child.walk()


class CatalogStore:
    """SQLite-backed catalog node store."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def _row_to_node(self, row: sqlite3.Row) -> CatalogNode:
        return CatalogNode(
            id=row["id"],
            repository_id=row["repository_id"],
            document_id=row["document_id"],
            name=row["name"],
            slug=row["slug"],
            description=row["description"],
            parent_id=row["parent_id"],
            prompt=row["prompt"],
            order=row["sort_order"],
            replaces_id=row["replaces_id"],
            is_deleted=bool(row["is_deleted"]),
            deleted_at=parse_timestamp(row["deleted_at"]),
            created_at=parse_timestamp(row["created_at"]),
        )

    def get(self, node_id: str) -> Optional[CatalogNode]:
        """Get a node by ID, deleted or not."""
        row = self.db.execute("SELECT * FROM catalog_nodes WHERE id = ?", (node_id,)).fetchone()
        return self._row_to_node(row) if row else None

    def all_nodes(self, repository_id: str) -> list[CatalogNode]:
        """List every node of a repository, including soft-deleted ones."""
        cursor = self.db.execute(
            "SELECT * FROM catalog_nodes WHERE repository_id = ? ORDER BY created_at, sort_order",
            (repository_id,),
        )
        return [self._row_to_node(row) for row in cursor.fetchall()]

    def live_nodes(self, repository_id: str) -> list[CatalogNode]:
        """List nodes that are not soft-deleted."""
        cursor = self.db.execute(
            """
            SELECT * FROM catalog_nodes
            WHERE repository_id = ? AND is_deleted = 0
            ORDER BY parent_id, sort_order
            """,
            (repository_id,),
        )
        return [self._row_to_node(row) for row in cursor.fetchall()]

    def live_tree(self, repository_id: str) -> list[CatalogTreeNode]:
        """Build the live catalog tree.

        Only nodes reachable from a root through live parents are included, so
        a live node under a deleted parent never shows up.
        """
        children_of: dict[Optional[str], list[CatalogNode]] = defaultdict(list)
        for node in self.live_nodes(repository_id):
            children_of[node.parent_id].append(node)

        def build(parent_id: Optional[str]) -> list[CatalogTreeNode]:
            siblings = sorted(children_of.get(parent_id, []), key=lambda n: (n.order, n.name))
            return [CatalogTreeNode(node=n, children=build(n.id)) for n in siblings]

        return build(None)

    def insert_many(self, nodes: list[CatalogNode]) -> None:
        """Insert new nodes."""
        now = format_timestamp(utc_now())
        self.db.executemany(
            """
            INSERT INTO catalog_nodes
                (id, repository_id, document_id, parent_id, name, slug, description,
                 prompt, sort_order, replaces_id, is_deleted, deleted_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, NULL, ?)
            """,
            [
                (
                    n.id,
                    n.repository_id,
                    n.document_id,
                    n.parent_id,
                    n.name,
                    n.slug,
                    n.description,
                    n.prompt,
                    n.order,
                    n.replaces_id,
                    format_timestamp(n.created_at) if n.created_at else now,
                )
                for n in nodes
            ],
        )
        self.db.commit()

    def soft_delete(
        self, repository_id: str, node_ids: Iterable[str], when: Optional[datetime] = None
    ) -> int:
        """Mark live nodes as deleted.

        Returns:
            Number of nodes that were live and are now deleted.
        """
        ids = list(node_ids)
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        cursor = self.db.execute(
            f"""
            UPDATE catalog_nodes
            SET is_deleted = 1, deleted_at = ?
            WHERE repository_id = ? AND is_deleted = 0 AND id IN ({placeholders})
            """,
            [format_timestamp(when or utc_now()), repository_id, *ids],
        )
        self.db.commit()
        return cursor.rowcount

    def reparent(self, repository_id: str, old_parent_id: str, new_parent_id: str) -> int:
        """Move the live children of one node under another."""
        cursor = self.db.execute(
            """
            UPDATE catalog_nodes SET parent_id = ?
            WHERE repository_id = ? AND parent_id = ? AND is_deleted = 0
            """,
            (new_parent_id, repository_id, old_parent_id),
        )
        self.db.commit()
        return cursor.rowcount

    def set_orders(self, orders: list[tuple[str, int]]) -> None:
        """Rewrite sort order for (node_id, order) pairs."""
        self.db.executemany(
            "UPDATE catalog_nodes SET sort_order = ? WHERE id = ?",
            [(order, node_id) for node_id, order in orders],
        )
        self.db.commit()
