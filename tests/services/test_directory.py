"""Tests for the Directory façade: handles, result boundary, plugins, bulk import."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from orgdir.domain.errors import ImportFailure, InvalidOperationError, NotFoundError, ValidationError
from orgdir.plugins import hookimpl
from orgdir.plugins.builtins.json_import import JsonImportPlugin
from orgdir.services.directory import Directory, to_plain

if TYPE_CHECKING:
    from tests.conftest import Sample


class Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, int | None]] = []

    @hookimpl
    def post_change(self, op: str, kind: str, entity_id: int | None) -> None:
        self.calls.append((op, kind, entity_id))


class Broken:
    @hookimpl
    def post_change(self, op: str) -> None:
        raise RuntimeError(f"cannot handle {op}")


# ---------------------------------------------------------------------------
# Handles
# ---------------------------------------------------------------------------


class TestHandles:
    @pytest.mark.parametrize("ref", ["root", " ROOT ", "Root"])
    def test_root_sentinel(self, directory: Directory, sample: Sample, ref: str) -> None:
        assert directory.area(ref).area_id == sample.root.area_id

    def test_string_id(self, directory: Directory, sample: Sample) -> None:
        assert directory.area(str(sample.housing.area_id)).area.name == "Housing"

    def test_malformed_id(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(NotFoundError):
            directory.area("housing")

    def test_handle_chain(self, directory: Directory, sample: Sample) -> None:
        housing = directory.area("root").descend(["Student Support", "Housing"])
        (entry,) = directory.area(housing).contacts_by_area()
        assert [c.first_name for c in entry.contacts] == ["Ann"]

    def test_collection_handle(self, directory: Directory, sample: Sample) -> None:
        handle = directory.collection(sample.housing_team.collection_id)
        assert handle.area().area_id == sample.housing.area_id
        assert handle.toggle_primary().primary is True
        assert handle.collection.primary is True

    def test_contact_handle_remove_without_collection(self, directory: Directory, sample: Sample) -> None:
        handle = directory.contact(sample.bob.contact_id)
        handle.detach(sample.advising_team)
        assert handle.remove() == {"success": True}

    def test_contact_handle_remove_returns_collection(self, directory: Directory, sample: Sample) -> None:
        former = directory.contact(sample.cara.contact_id).remove()
        assert former.collection_id == sample.advising_team.collection_id

    def test_contact_handle_update(self, directory: Directory, sample: Sample) -> None:
        handle = directory.contact(sample.bob.contact_id)
        handle.update({"email": "bob@example.org"})
        assert handle.contact.info["email"] == "bob@example.org"


# ---------------------------------------------------------------------------
# Directory-wide reads
# ---------------------------------------------------------------------------


class TestContactSearch:
    def test_prefix_on_either_name(self, directory: Directory, sample: Sample) -> None:
        found = directory.contact_search("b")
        assert [c.contact_id for c in found] == [sample.cara.contact_id, sample.bob.contact_id]

    def test_every_term_must_match(self, directory: Directory, sample: Sample) -> None:
        assert [c.contact_id for c in directory.contact_search("Cara BR")] == [sample.cara.contact_id]
        assert directory.contact_search("cara jones") == []

    def test_unsafe_characters_stripped(self, directory: Directory, sample: Sample) -> None:
        assert [c.contact_id for c in directory.contact_search("sm'ith%")] == [sample.ann.contact_id]
        assert directory.contact_search("'; --") == []

    def test_blank(self, directory: Directory, sample: Sample) -> None:
        assert directory.contact_search("   ") == []


class TestBatch:
    def test_keyed_by_area(self, directory: Directory, sample: Sample) -> None:
        batch = directory.batch_contacts_by_area([sample.housing.area_id, str(sample.advising.area_id), sample.housing])
        assert set(batch) == {sample.housing.area_id, sample.advising.area_id}
        assert len(batch[sample.advising.area_id][0].contacts) == 2

    def test_scalar_rejected(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(ValidationError):
            directory.batch_contacts_by_area(sample.housing.area_id)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Bulk import
# ---------------------------------------------------------------------------


@pytest.fixture
def importing(directory: Directory) -> Directory:
    directory.plugins.register_plugin(JsonImportPlugin(), name="json-import")
    return directory


def _write(tmp_path: Path, name: str, payload: object) -> Path:
    path = tmp_path / name
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


class TestBulkImport:
    def test_imports_nested_areas(self, importing: Directory, sample: Sample, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            "library.json",
            [
                {
                    "name": "Lending",
                    "note": "Ground floor",
                    "contacts": [{"first_name": "Eve", "last_name": "Long", "position": "Librarian"}],
                    "children": [{"name": "Returns"}],
                }
            ],
        )
        target = importing.bulk_import(sample.library, path)
        assert target.area_id == sample.library.area_id

        lending = importing.hierarchy.descend(sample.library, ["Lending"])
        assert lending.note == "Ground floor"
        assert importing.hierarchy.descend(sample.library, ["Lending", "Returns"]).name == "Returns"
        (entry,) = importing.collections.contacts_by_area(lending)
        assert [c.position for c in entry.contacts] == ["Librarian"]

    def test_object_form(self, importing: Directory, sample: Sample, tmp_path: Path) -> None:
        path = _write(tmp_path, "batch.json", {"areas": [{"name": "Archive"}]})
        importing.bulk_import(sample.special, path)
        assert [a.name for a in importing.hierarchy.children(sample.special)] == ["Archive"]

    def test_existing_contact_rolls_back(self, importing: Directory, sample: Sample, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            "bad.json",
            [{"name": "Desk"}, {"name": "Counter", "contacts": [{"contact_id": sample.bob.contact_id}]}],
        )
        with pytest.raises(InvalidOperationError):
            importing.bulk_import(sample.library, path)
        assert [a.name for a in importing.hierarchy.children(sample.library)] == ["Special Collections"]

    def test_missing_file(self, importing: Directory, sample: Sample, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError):
            importing.bulk_import(sample.library, tmp_path / "nope.json")

    def test_no_plugin_accepts(self, importing: Directory, sample: Sample, tmp_path: Path) -> None:
        path = tmp_path / "areas.csv"
        path.write_text("name\nDesk\n", encoding="utf-8")
        with pytest.raises(ImportFailure):
            importing.bulk_import(sample.library, path)

    def test_malformed_json(self, importing: Directory, sample: Sample, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("[{", encoding="utf-8")
        with pytest.raises(ImportFailure):
            importing.bulk_import(sample.library, path)

    def test_invalid_batch(self, importing: Directory, sample: Sample, tmp_path: Path) -> None:
        path = _write(tmp_path, "nameless.json", [{"note": "no name"}])
        with pytest.raises(ImportFailure) as excinfo:
            importing.bulk_import(sample.library, path)
        assert excinfo.value.detail["errors"]


# ---------------------------------------------------------------------------
# Result boundary
# ---------------------------------------------------------------------------


class TestCall:
    def test_success_payload(self, directory: Directory, sample: Sample) -> None:
        result = directory.call("children", lambda: directory.area("root").children())
        assert result.ok
        assert result.op == "children"
        assert result.error is None
        names = [(a["name"], a.get("note")) for a in result.data["result"]]
        assert names == [("Library", "Baillieu building"), ("Student Support", None)]
        assert "duration_ms" in result.meta

    def test_unset_annotations_dropped(self, directory: Directory, sample: Sample) -> None:
        result = directory.call("area", lambda: directory.area(sample.housing.area_id).area)
        assert result.data["result"] == {"area_id": sample.housing.area_id, "name": "Housing", "is_root": False}

    @pytest.mark.parametrize(
        ("func", "code"),
        [
            (lambda d, s: d.area(424242), "NOT_FOUND"),
            (lambda d, s: d.hierarchy.insert_child(s.root, ""), "VALIDATION_ERROR"),
            (lambda d, s: d.hierarchy.detach(s.root), "INVALID_OPERATION"),
        ],
    )
    def test_error_codes(self, directory: Directory, sample: Sample, func, code: str) -> None:
        result = directory.call("op", lambda: func(directory, sample))
        assert not result.ok
        assert result.error.code == code
        assert result.data == {}

    def test_unexpected_errors_propagate(self, directory: Directory) -> None:
        def boom() -> None:
            raise KeyError("bug")

        with pytest.raises(KeyError):
            directory.call("op", boom)


class TestPostChange:
    def test_mutation_notifies(self, directory: Directory, sample: Sample) -> None:
        recorder = Recorder()
        directory.plugins.register_plugin(recorder)
        result = directory.call(
            "insert_child", lambda: directory.area(sample.library).insert_child("Desk"), kind="area"
        )
        desk_id = result.data["result"]["area_id"]
        assert recorder.calls == [("insert_child", "area", desk_id)]

    def test_explicit_entity_id(self, directory: Directory, sample: Sample) -> None:
        recorder = Recorder()
        directory.plugins.register_plugin(recorder)
        directory.call(
            "remove_area",
            lambda: directory.area(sample.special).remove(),
            kind="area",
            entity_id=sample.special.area_id,
        )
        assert recorder.calls == [("remove_area", "area", sample.special.area_id)]

    def test_reads_do_not_notify(self, directory: Directory, sample: Sample) -> None:
        recorder = Recorder()
        directory.plugins.register_plugin(recorder)
        directory.call("children", lambda: directory.area("root").children())
        assert recorder.calls == []

    def test_failed_mutation_does_not_notify(self, directory: Directory, sample: Sample) -> None:
        recorder = Recorder()
        directory.plugins.register_plugin(recorder)
        directory.call("detach_area", lambda: directory.area("root").detach(), kind="area")
        assert recorder.calls == []

    def test_plugin_failure_is_warning(self, directory: Directory, sample: Sample) -> None:
        directory.plugins.register_plugin(Broken(), name="broken")
        result = directory.call("update_area", lambda: directory.area(sample.library).update({"note": "x"}), kind="area")
        assert result.ok
        assert result.warnings == ["Plugin broken failed on update_area: cannot handle update_area"]
        assert directory.hierarchy.load_area(sample.library.area_id).note == "x"


class TestToPlain:
    def test_nested_structures(self, sample: Sample, tmp_path: Path) -> None:
        plain = to_plain({1: [sample.housing], "file": tmp_path / "x.json", "pair": (sample.root,)})
        assert plain[1] == [{"area_id": sample.housing.area_id, "name": "Housing", "is_root": False}]
        assert plain["file"] == str(tmp_path / "x.json")
        assert plain["pair"][0]["is_root"] is True
