"""Tests for HierarchyEngine — navigation, reconstruction and tree mutation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select

from orgdir.domain.errors import (
    InvalidOperationError,
    NotFoundError,
    PartialFailure,
    StoreFailure,
    ValidationError,
)
from orgdir.domain.models import Area
from orgdir.infrastructure import queries
from orgdir.infrastructure.database.schema import edges, nodes
from orgdir.infrastructure.store import SqlGraphStore
from orgdir.services.directory import Directory
from orgdir.services.hierarchy import HierarchyEngine

if TYPE_CHECKING:
    from tests.conftest import FailingStore, Sample


def _names(areas: list[Area]) -> list[str]:
    return [a.name for a in areas]


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class TestRoot:
    def test_root_resolves(self, directory: Directory, sample: Sample) -> None:
        root = directory.hierarchy.root()
        assert root.area_id == sample.root.area_id
        assert root.is_root

    def test_missing_root(self, directory: Directory) -> None:
        with pytest.raises(NotFoundError):
            directory.hierarchy.root()

    def test_second_root_refused(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(InvalidOperationError):
            directory.init_root("Another")

    def test_blank_root_name(self, directory: Directory) -> None:
        with pytest.raises(ValidationError):
            directory.hierarchy.create_root("   ")


class TestDescend:
    def test_end_to_end_path(self, directory: Directory, sample: Sample) -> None:
        found = directory.hierarchy.descend(sample.root, ["Student Support", "Housing"])
        assert found.name == "Housing"
        assert found.area_id == sample.housing.area_id

    def test_empty_names_returns_start(self, directory: Directory, sample: Sample) -> None:
        assert directory.hierarchy.descend(sample.support, []).area_id == sample.support.area_id

    def test_missing_level(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(NotFoundError):
            directory.hierarchy.descend(sample.root, ["Student Support", "Parking"])

    def test_names_must_match_exactly(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(NotFoundError):
            directory.hierarchy.descend(sample.root, ["student support"])

    def test_same_named_siblings_lowest_id_wins(self, directory: Directory, sample: Sample) -> None:
        h = directory.hierarchy
        first = h.insert_child(sample.library, "Desk")
        h.insert_child(sample.library, "Desk")
        assert h.descend(sample.library, ["Desk"]).area_id == first.area_id

    def test_string_is_not_a_name_list(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(ValidationError):
            directory.hierarchy.descend(sample.root, "Library")  # type: ignore[arg-type]


class TestParentAndChildren:
    def test_children_sorted_by_name(self, directory: Directory, sample: Sample) -> None:
        children = directory.hierarchy.children(sample.root)
        assert _names(children) == ["Library", "Student Support"]
        assert all(a.name <= b.name for a, b in zip(children, children[1:], strict=False))

    def test_sort_is_case_sensitive(self, directory: Directory, sample: Sample) -> None:
        directory.hierarchy.insert_child(sample.support, "accommodation")
        assert _names(directory.hierarchy.children(sample.support)) == ["Advising", "Housing", "accommodation"]

    def test_leaf_has_no_children(self, directory: Directory, sample: Sample) -> None:
        assert directory.hierarchy.children(sample.housing) == []

    def test_parent(self, directory: Directory, sample: Sample) -> None:
        assert directory.hierarchy.parent(sample.housing).area_id == sample.support.area_id
        assert directory.hierarchy.parent(sample.root) is None

    def test_note_round_trips(self, directory: Directory, sample: Sample) -> None:
        library = directory.hierarchy.load_area(sample.library.area_id)
        assert library.note == "Baillieu building"

    def test_unknown_id(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(NotFoundError):
            directory.hierarchy.children(99999)

    def test_id_of_another_label(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(NotFoundError):
            directory.hierarchy.children(sample.housing_team.collection_id)


# ---------------------------------------------------------------------------
# Reconstruction
# ---------------------------------------------------------------------------


class TestSubtree:
    def test_depth_zero_is_single_node(self, directory: Directory, sample: Sample) -> None:
        tree = directory.hierarchy.subtree(sample.root, 0)
        assert tree.area.area_id == sample.root.area_id
        assert tree.children == []

    def test_full_subtree(self, directory: Directory, sample: Sample) -> None:
        tree = directory.hierarchy.subtree(sample.root)
        assert _names(tree.walk()) == [
            "13MELB",
            "Library",
            "Special Collections",
            "Student Support",
            "Advising",
            "Housing",
        ]

    def test_depth_limit(self, directory: Directory, sample: Sample) -> None:
        tree = directory.hierarchy.subtree(sample.root, 1)
        assert _names([c.area for c in tree.children]) == ["Library", "Student Support"]
        assert all(c.children == [] for c in tree.children)

    def test_negative_depth(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(ValidationError):
            directory.hierarchy.subtree(sample.root, -1)


class TestAncestorPath:
    def test_path_ends_at_area(self, directory: Directory, sample: Sample) -> None:
        path = directory.hierarchy.ancestor_path(sample.housing)
        assert _names(path) == ["13MELB", "Student Support", "Housing"]
        assert path[-1].area_id == sample.housing.area_id

    def test_path_from_base(self, directory: Directory, sample: Sample) -> None:
        path = directory.hierarchy.ancestor_path(sample.housing, sample.support)
        assert _names(path) == ["Student Support", "Housing"]

    def test_base_is_area(self, directory: Directory, sample: Sample) -> None:
        assert _names(directory.hierarchy.ancestor_path(sample.housing, sample.housing)) == ["Housing"]

    def test_area_not_below_base(self, directory: Directory, sample: Sample) -> None:
        assert directory.hierarchy.ancestor_path(sample.housing, sample.library) == []

    def test_path_length_is_edge_distance(self, directory: Directory, sample: Sample) -> None:
        for area, depth in ((sample.root, 0), (sample.support, 1), (sample.special, 2)):
            assert len(directory.hierarchy.ancestor_path(area)) == depth + 1


class TestDescendantContactCount:
    def test_counts_strict_descendants(self, directory: Directory, sample: Sample) -> None:
        h = directory.hierarchy
        assert h.descendant_contact_count(sample.root) == 3
        assert h.descendant_contact_count(sample.support) == 3
        assert h.descendant_contact_count(sample.housing) == 0
        assert h.descendant_contact_count(sample.library) == 0


# ---------------------------------------------------------------------------
# Mutation
# ---------------------------------------------------------------------------


class TestInsertChild:
    def test_insert(self, directory: Directory, sample: Sample) -> None:
        area = directory.hierarchy.insert_child(sample.housing, "  Off-campus  ", note="Rentals")
        assert area.name == "Off-campus"
        assert area.note == "Rentals"
        assert _names(directory.hierarchy.children(sample.housing)) == ["Off-campus"]

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_name(self, directory: Directory, sample: Sample, name: object) -> None:
        with pytest.raises(ValidationError):
            directory.hierarchy.insert_child(sample.root, name)  # type: ignore[arg-type]

    def test_unknown_parent(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(NotFoundError):
            directory.hierarchy.insert_child(424242, "Nowhere")


class TestDetach:
    def test_detach_keeps_area(self, directory: Directory, sample: Sample) -> None:
        h = directory.hierarchy
        former = h.detach(sample.housing)
        assert former.area_id == sample.support.area_id
        assert "Housing" not in _names(h.children(sample.support))
        assert h.load_area(sample.housing.area_id).name == "Housing"
        assert [a.area_id for a in h.orphans()] == [sample.housing.area_id]

    def test_detach_orphan_returns_none(self, directory: Directory, sample: Sample) -> None:
        directory.hierarchy.detach(sample.housing)
        assert directory.hierarchy.detach(sample.housing) is None

    def test_detach_root(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(InvalidOperationError):
            directory.hierarchy.detach(sample.root)


class TestRemove:
    def test_remove_cascades(self, directory: Directory, sample: Sample) -> None:
        h = directory.hierarchy
        former = h.remove(sample.support)
        assert former.area_id == sample.root.area_id
        assert _names(h.children(sample.root)) == ["Library"]
        for gone in (sample.support, sample.housing, sample.advising):
            with pytest.raises(NotFoundError):
                h.load_area(gone.area_id)
        for team in (sample.housing_team, sample.advising_team):
            with pytest.raises(NotFoundError):
                directory.collections.load_collection(team.collection_id)

    def test_contacts_survive_without_urls(self, directory: Directory, sample: Sample) -> None:
        directory.hierarchy.remove(sample.housing)
        ann = directory.collections.load_contact(sample.ann.contact_id)
        assert ann.first_name == "Ann"
        assert ann.url is None
        with directory.store.transaction() as tx:
            urls = tx.execute(select(func.count().label("n")).select_from(nodes).where(nodes.c.label == "Url"))
        assert urls[0]["n"] == 0

    def test_no_dangling_edges(self, directory: Directory, sample: Sample) -> None:
        directory.hierarchy.remove(sample.support)
        live = select(nodes.c.id)
        dangling = directory.store.execute(
            select(edges.c.id).where(edges.c.source_id.not_in(live) | edges.c.target_id.not_in(live))
        )
        assert dangling == []

    def test_remove_orphan_returns_none(self, directory: Directory, sample: Sample) -> None:
        directory.hierarchy.detach(sample.library)
        assert directory.hierarchy.remove(sample.library) is None
        assert directory.hierarchy.orphans() == []

    def test_remove_root(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(InvalidOperationError):
            directory.hierarchy.remove(sample.root)


class TestReparent:
    def test_move_subtree(self, directory: Directory, sample: Sample) -> None:
        h = directory.hierarchy
        h.reparent(sample.support, sample.library)
        assert _names(h.children(sample.root)) == ["Library"]
        assert _names(h.ancestor_path(sample.housing)) == ["13MELB", "Library", "Student Support", "Housing"]

    def test_reattach_orphan(self, directory: Directory, sample: Sample) -> None:
        h = directory.hierarchy
        h.detach(sample.special)
        h.reparent(sample.special, sample.housing)
        assert h.parent(sample.special).area_id == sample.housing.area_id
        assert h.orphans() == []

    def test_into_own_subtree(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(InvalidOperationError):
            directory.hierarchy.reparent(sample.support, sample.housing)
        assert directory.hierarchy.parent(sample.support).area_id == sample.root.area_id

    def test_onto_itself(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(InvalidOperationError):
            directory.hierarchy.reparent(sample.support, sample.support)

    def test_root(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(InvalidOperationError):
            directory.hierarchy.reparent(sample.root, sample.library)

    def test_missing_new_parent(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(NotFoundError):
            directory.hierarchy.reparent(sample.support, 987654)


class TestUpdate:
    def test_rename_and_note(self, directory: Directory, sample: Sample) -> None:
        updated = directory.hierarchy.update(sample.housing, {"name": "Accommodation", "note": "Ground floor"})
        assert updated.name == "Accommodation"
        stored = directory.hierarchy.load_area(sample.housing.area_id)
        assert (stored.name, stored.note) == ("Accommodation", "Ground floor")

    def test_clear_note(self, directory: Directory, sample: Sample) -> None:
        directory.hierarchy.update(sample.library, {"note": ""})
        assert directory.hierarchy.load_area(sample.library.area_id).note is None

    def test_unknown_keys_ignored(self, directory: Directory, sample: Sample) -> None:
        updated = directory.hierarchy.update(sample.housing, {"is_root": True, "colour": "red"})
        assert updated == sample.housing
        assert not directory.hierarchy.load_area(sample.housing.area_id).is_root

    def test_empty_name(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(ValidationError):
            directory.hierarchy.update(sample.housing, {"name": " "})


# ---------------------------------------------------------------------------
# Deep trees
# ---------------------------------------------------------------------------


class TestDeepChain:
    """A single chain of 70 areas below the root, deeper than any fixed recursion cap."""

    LEVELS = 70

    @pytest.fixture
    def chain(self, directory: Directory) -> list[Area]:
        areas = [directory.init_root("Top")]
        for level in range(1, self.LEVELS + 1):
            areas.append(directory.hierarchy.insert_child(areas[-1], f"L{level}"))
        return areas

    def test_subtree_reaches_the_bottom(self, directory: Directory, chain: list[Area]) -> None:
        assert len(directory.hierarchy.subtree(chain[0]).walk()) == self.LEVELS + 1

    def test_bounded_subtree(self, directory: Directory, chain: list[Area]) -> None:
        assert _names(directory.hierarchy.subtree(chain[0], max_depth=3).walk()) == ["Top", "L1", "L2", "L3"]

    def test_ancestor_path_reaches_the_root(self, directory: Directory, chain: list[Area]) -> None:
        path = directory.hierarchy.ancestor_path(chain[-1])
        assert path == chain

    def test_ancestor_path_from_base(self, directory: Directory, chain: list[Area]) -> None:
        assert directory.hierarchy.ancestor_path(chain[-1], base=chain[1]) == chain[1:]

    def test_contact_count_sees_deepest_collection(self, directory: Directory, chain: list[Area]) -> None:
        collection = directory.collections.new_collection(chain[-1])
        directory.collections.new_contact(collection, {"first_name": "Dee", "last_name": "Pest"})
        assert directory.hierarchy.descendant_contact_count(chain[0]) == 1

    def test_search_finds_deepest_area(self, directory: Directory, chain: list[Area]) -> None:
        (path,) = directory.search_engine.search(chain[0], "L70")
        assert _names(path) == _names(chain[1:])

    def test_remove_takes_the_whole_chain(self, directory: Directory, chain: list[Area]) -> None:
        collection = directory.collections.new_collection(chain[-1])
        directory.hierarchy.remove(chain[1])
        assert directory.orphan_areas() == []
        with pytest.raises(NotFoundError):
            directory.hierarchy.load_area(chain[-1].area_id)
        with pytest.raises(NotFoundError):
            directory.collection(collection.collection_id)

    def test_reparent_under_deep_descendant(self, directory: Directory, chain: list[Area]) -> None:
        with pytest.raises(InvalidOperationError):
            directory.hierarchy.reparent(chain[1], chain[-1])
        assert directory.hierarchy.parent(chain[1]) == chain[0]


class TestReparentPhases:
    def test_atomic_reparent_rolls_back(
        self, directory: Directory, sample: Sample, failing_store: type[FailingStore]
    ) -> None:
        engine = HierarchyEngine(failing_store(directory.store, queries.insert_edge()), directory.config)
        with pytest.raises(StoreFailure):
            engine.reparent(sample.housing, sample.library)
        assert directory.hierarchy.parent(sample.housing) == sample.support
        assert directory.orphan_areas() == []

    def test_non_atomic_reparent_reports_partial_failure(
        self,
        directory: Directory,
        sample: Sample,
        failing_store: type[FailingStore],
        loose_store: SqlGraphStore,
    ) -> None:
        engine = HierarchyEngine(failing_store(loose_store, queries.insert_edge()), directory.config)
        with pytest.raises(PartialFailure) as excinfo:
            engine.reparent(sample.housing, sample.library)
        assert excinfo.value.detail["detached_from"] == sample.support.area_id
        assert _names(directory.orphan_areas()) == ["Housing"]
