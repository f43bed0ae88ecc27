"""Catalog reconciliation tests."""

import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from wikisync.db.catalog import CatalogNode, CatalogStore
from wikisync.db.connection import Database
from wikisync.db.migrations import run_migrations
from wikisync.db.repositories import RepositoryStore
from wikisync.sync.catalog import (
    CatalogProposal,
    CatalogReconciler,
    CatalogStructureError,
    ProposedCatalogNode,
)

# id -> (parent, order); names are the ids title-cased
SEED = {
    "guide": (None, 0),
    "api": (None, 1),
    "faq": (None, 2),
    "install": ("guide", 0),
    "usage": ("guide", 1),
    "x1": ("api", 0),
    "x1-detail": ("x1", 0),
}


def seed_catalog(db: Database) -> tuple[str, str, CatalogStore]:
    """Register a repository and write the SEED catalog."""
    repositories = RepositoryStore(db)
    repository_id = repositories.add(name="Repo", address="https://example.com/r.git")
    document_id = repositories.add_document(repository_id, "/tmp/r")
    store = CatalogStore(db)
    store.insert_many(
        [
            CatalogNode(
                id=node_id,
                repository_id=repository_id,
                document_id=document_id,
                name=node_id.title(),
                slug=node_id,
                parent_id=parent,
                order=order,
            )
            for node_id, (parent, order) in SEED.items()
        ]
    )
    return repository_id, document_id, store


@pytest.fixture
def catalog(temp_db):
    return seed_catalog(temp_db)


def shape(store: CatalogStore, repository_id: str) -> list:
    """Live tree as nested (name, order, children) tuples."""

    def convert(items):
        return [(i.node.name, i.node.order, convert(i.children)) for i in items]

    return convert(store.live_tree(repository_id))


def proposal(**data) -> CatalogProposal:
    return CatalogProposal.model_validate(data)


# =============================================================================
# Proposal parsing
# =============================================================================


def test_proposed_node_accepts_id_aliases():
    """Id, ID and id are all accepted."""
    for key in ("id", "Id", "ID"):
        node = ProposedCatalogNode.model_validate({key: "n1", "title": "T"})
        assert node.id == "n1"


def test_proposed_node_normalizes_nulls():
    """Null children, blank parent ids and a title-less name are tolerated."""
    node = ProposedCatalogNode.model_validate(
        {"name": "Getting Started", "parent_id": "", "children": None, "type": None}
    )

    assert node.children == []
    assert node.parent_id is None
    assert node.slug == "GettingStarted"
    assert not node.is_update


def test_proposed_node_requires_label():
    """A node with neither title nor name is rejected."""
    with pytest.raises(ValueError):
        ProposedCatalogNode.model_validate({"id": "n1"})


def test_slug_strips_all_whitespace():
    """The slug is the title with every whitespace character removed."""
    node = ProposedCatalogNode(title=" Quick\tStart  Guide\n")

    assert node.slug == "QuickStartGuide"


# =============================================================================
# Adds
# =============================================================================


def test_add_top_level_node_goes_first(catalog):
    """A new top-level node takes order 0 and existing roots shift after it."""
    repository_id, document_id, store = catalog
    reconciler = CatalogReconciler(store)

    result = reconciler.reconcile(
        repository_id, document_id, proposal(items=[{"title": "Intro", "name": "Intro"}])
    )

    roots = [(name, order) for name, order, _ in shape(store, repository_id)]
    assert roots == [("Intro", 0), ("Guide", 1), ("Api", 2), ("Faq", 3)]
    assert len(result.added) == 1
    assert result.added[0].slug == "Intro"
    assert result.added[0].description == "Intro"
    assert result.reordered == 3


def test_add_ignores_provided_id(catalog):
    """Added nodes always get a fresh identity."""
    repository_id, document_id, store = catalog

    result = CatalogReconciler(store).reconcile(
        repository_id, document_id, proposal(items=[{"id": "guide", "title": "Other"}])
    )

    assert result.added[0].id != "guide"
    assert store.get("guide").name == "Guide"


def test_add_nested_children_under_existing_parent(catalog):
    """Children of a proposed node are written beneath it, parents first."""
    repository_id, document_id, store = catalog

    result = CatalogReconciler(store).reconcile(
        repository_id,
        document_id,
        proposal(
            items=[
                {
                    "title": "Advanced",
                    "parent_id": "guide",
                    "children": [{"title": "Tuning"}, {"title": "Scaling"}],
                }
            ]
        ),
    )

    advanced, tuning, scaling = result.nodes
    assert advanced.parent_id == "guide"
    assert tuning.parent_id == advanced.id
    assert [tuning.order, scaling.order] == [0, 1]
    guide = shape(store, repository_id)[0]
    assert [(name, order) for name, order, _ in guide[2]] == [
        ("Advanced", 0),
        ("Install", 1),
        ("Usage", 2),
    ]


# =============================================================================
# Deletes
# =============================================================================


def test_delete_cascades_to_descendants(catalog):
    """Deleting a node soft-deletes its live descendants."""
    repository_id, document_id, store = catalog

    result = CatalogReconciler(store).reconcile(
        repository_id, document_id, proposal(delete_id=["x1"])
    )

    assert result.deleted_ids == ["x1", "x1-detail"]
    assert store.get("x1").is_deleted
    assert store.get("x1-detail").is_deleted
    api = shape(store, repository_id)[1]
    assert api == ("Api", 1, [])


def test_delete_compacts_sibling_order(catalog):
    """Remaining siblings are renumbered without gaps."""
    repository_id, document_id, store = catalog

    CatalogReconciler(store).reconcile(repository_id, document_id, proposal(delete_id=["guide"]))

    roots = [(name, order) for name, order, _ in shape(store, repository_id)]
    assert roots == [("Api", 0), ("Faq", 1)]
    assert store.get("install").is_deleted


# =============================================================================
# Updates
# =============================================================================


def test_update_supersedes_node(catalog):
    """An update writes a replacement and retires the old identity."""
    repository_id, document_id, store = catalog

    result = CatalogReconciler(store).reconcile(
        repository_id,
        document_id,
        proposal(items=[{"id": "guide", "type": "update", "title": "User Guide"}]),
    )

    (new,) = result.updated
    assert new.id != "guide"
    assert new.replaces_id == "guide"
    assert new.parent_id is None
    assert store.get("guide").is_deleted
    assert store.get("install").parent_id == new.id
    assert store.get("usage").parent_id == new.id

    guide = shape(store, repository_id)[0]
    assert guide[0] == "User Guide"
    assert [name for name, _, _ in guide[2]] == ["Install", "Usage"]


def test_update_keeps_position_among_siblings_first(catalog):
    """The replacement is ordered before untouched siblings in its scope."""
    repository_id, document_id, store = catalog

    CatalogReconciler(store).reconcile(
        repository_id,
        document_id,
        proposal(items=[{"id": "faq", "type": "UPDATE", "title": "Questions"}]),
    )

    roots = [(name, order) for name, order, _ in shape(store, repository_id)]
    assert roots == [("Questions", 0), ("Guide", 1), ("Api", 2)]


def test_update_moves_to_new_parent(catalog):
    """An update with parent_id moves the replacement."""
    repository_id, document_id, store = catalog

    result = CatalogReconciler(store).reconcile(
        repository_id,
        document_id,
        proposal(items=[{"id": "faq", "type": "update", "title": "Faq", "parent_id": "guide"}]),
    )

    assert result.updated[0].parent_id == "guide"
    roots = [name for name, _, _ in shape(store, repository_id)]
    assert roots == ["Guide", "Api"]


def test_added_child_under_updated_node_follows_replacement(catalog):
    """A new node attached to an updated node lands under the replacement."""
    repository_id, document_id, store = catalog

    result = CatalogReconciler(store).reconcile(
        repository_id,
        document_id,
        proposal(
            items=[
                {"id": "api", "type": "update", "title": "API"},
                {"title": "Webhooks", "parent_id": "api"},
            ]
        ),
    )

    (replacement,) = result.updated
    (webhooks,) = result.added
    assert webhooks.parent_id == replacement.id


# =============================================================================
# Structural errors
# =============================================================================


@pytest.mark.parametrize(
    "data",
    [
        {"delete_id": ["missing"]},
        {"items": [{"id": "missing", "type": "update", "title": "X"}]},
        {"items": [{"type": "update", "title": "No id"}]},
        {"items": [{"title": "Orphan", "parent_id": "missing"}]},
        {"delete_id": ["x1"], "items": [{"id": "x1-detail", "type": "update", "title": "X"}]},
        {"delete_id": ["api"], "items": [{"title": "Child", "parent_id": "x1"}]},
        {"items": [{"id": "guide", "type": "update", "title": "G", "parent_id": "install"}]},
        {
            "items": [
                {"id": "faq", "type": "update", "title": "A"},
                {"id": "faq", "type": "update", "title": "B"},
            ]
        },
    ],
)
def test_invalid_proposal_writes_nothing(catalog, temp_db, data):
    """Structural errors are raised before any write."""
    repository_id, document_id, store = catalog
    before = temp_db.execute("SELECT * FROM catalog_nodes ORDER BY id").fetchall()

    with pytest.raises(CatalogStructureError):
        CatalogReconciler(store).reconcile(repository_id, document_id, proposal(**data))

    after = temp_db.execute("SELECT * FROM catalog_nodes ORDER BY id").fetchall()
    assert [tuple(r) for r in after] == [tuple(r) for r in before]


def test_empty_proposal_changes_nothing(catalog):
    """An empty proposal leaves the tree as it was."""
    repository_id, document_id, store = catalog
    before = shape(store, repository_id)

    result = CatalogReconciler(store).reconcile(repository_id, document_id, proposal())

    assert shape(store, repository_id) == before
    assert result.nodes == []
    assert result.reordered == 0


# =============================================================================
# Properties
# =============================================================================


def _closure(ids: set[str]) -> set[str]:
    found = set(ids)
    changed = True
    while changed:
        changed = False
        for node_id, (parent, _) in SEED.items():
            if parent in found and node_id not in found:
                found.add(node_id)
                changed = True
    return found


@st.composite
def proposals(draw):
    deletes = draw(st.sets(st.sampled_from(sorted(SEED))))
    gone = _closure(deletes)
    remaining = sorted(set(SEED) - gone)
    updates = draw(st.sets(st.sampled_from(remaining))) if remaining else set()
    parents = [None, *remaining]
    adds = draw(
        st.lists(
            st.tuples(st.sampled_from(parents), st.text("abcxyz", min_size=1, max_size=6)),
            max_size=5,
        )
    )
    items = [{"id": node_id, "type": "update", "title": f"New {node_id}"} for node_id in updates]
    items += [{"title": title, "parent_id": parent} for parent, title in adds]
    return {"delete_id": sorted(deletes), "items": items}


@settings(max_examples=50, deadline=None)
@given(proposals())
def test_sibling_orders_stay_contiguous(data):
    """After any valid proposal every sibling group is ordered 0..n-1."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db = Database(Path(tmpdir) / "test.db")
        try:
            run_migrations(db)
            repository_id, document_id, store = seed_catalog(db)

            CatalogReconciler(store).reconcile(repository_id, document_id, proposal(**data))

            def check(items):
                assert [i.node.order for i in items] == list(range(len(items)))
                for item in items:
                    check(item.children)

            tree = store.live_tree(repository_id)
            check(tree)
            live = store.live_nodes(repository_id)
            reachable = {n.id for root in tree for n in root.walk()}
            assert reachable == {n.id for n in live}
        finally:
            db.close()
