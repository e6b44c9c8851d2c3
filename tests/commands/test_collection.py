"""Tests for the collection and contact command groups."""

from __future__ import annotations

import json
from typing import Any

import pytest
from click.testing import CliRunner

from orgdir.cli import cli


def _ok(runner: CliRunner, *args: str) -> Any:
    result = runner.invoke(cli, ["--json", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)["data"]["result"]


@pytest.fixture
def seeded(cli_runner: CliRunner, _isolated_directory: None) -> dict[str, int]:
    _ok(cli_runner, "init", "--root-name", "13MELB")
    advising = _ok(cli_runner, "area", "add", "root", "Advising")["area_id"]
    team = _ok(cli_runner, "collection", "new", str(advising))["collection_id"]
    bob = _ok(
        cli_runner,
        "contact",
        "add",
        str(team),
        "--field",
        "first_name=Bob",
        "--field",
        "last_name=Jones",
        "--field",
        "position=Academic Adviser",
    )["contact_id"]
    cara = _ok(
        cli_runner,
        "contact",
        "add",
        str(team),
        "--field",
        "first_name=Cara",
        "--field",
        "last_name=Brown",
        "--url",
        "https://example.org/cara",
    )["contact_id"]
    return {"advising": advising, "team": team, "bob": bob, "cara": cara}


class TestCollectionCommands:
    def test_contacts_sorted(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        contacts = _ok(cli_runner, "collection", "contacts", str(seeded["team"]))
        assert [c["contact_id"] for c in contacts] == [seeded["cara"], seeded["bob"]]
        assert contacts[0]["url"] == "https://example.org/cara"

    def test_split_and_merge(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        fresh = _ok(cli_runner, "collection", "split", str(seeded["team"]), str(seeded["cara"]))["collection_id"]
        assert [c["contact_id"] for c in _ok(cli_runner, "collection", "contacts", str(fresh))] == [seeded["cara"]]
        _ok(cli_runner, "collection", "merge", str(seeded["team"]), str(fresh))
        assert len(_ok(cli_runner, "collection", "contacts", str(seeded["team"]))) == 2

    def test_split_non_member(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        other = _ok(cli_runner, "collection", "new", str(seeded["advising"]))["collection_id"]
        result = cli_runner.invoke(cli, ["--json", "collection", "split", str(other), str(seeded["bob"])])
        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "VALIDATION_ERROR"

    def test_successors_and_forest(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        later = _ok(cli_runner, "collection", "new", str(seeded["advising"]))["collection_id"]
        _ok(cli_runner, "collection", "successor-add", str(seeded["team"]), str(later), "--note", "from 2025")
        assert [c["collection_id"] for c in _ok(cli_runner, "collection", "successors", str(seeded["team"]))] == [
            later
        ]
        forest = _ok(cli_runner, "area", "contacts", str(seeded["advising"]))
        assert [e["collection_id"] for e in forest] == [seeded["team"]]
        assert forest[0]["successors"][0]["note"] == "from 2025"
        heads = _ok(cli_runner, "area", "collections", str(seeded["advising"]), "--heads")
        assert [c["collection_id"] for c in heads] == [seeded["team"]]

        _ok(cli_runner, "collection", "successor-remove", str(seeded["team"]), str(later))
        assert _ok(cli_runner, "collection", "successors", str(seeded["team"])) == []

    def test_show_text(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        result = cli_runner.invoke(cli, ["collection", "show", str(seeded["team"])])
        assert result.exit_code == 0
        assert "Bob Jones" in result.output
        assert "Academic Adviser" in result.output

    def test_primary_toggle(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        assert _ok(cli_runner, "collection", "primary", str(seeded["team"]))["primary"] is True
        assert _ok(cli_runner, "collection", "primary", str(seeded["team"]))["primary"] is False

    def test_batch_contacts(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        library = _ok(cli_runner, "area", "add", "root", "Library")["area_id"]
        batch = _ok(cli_runner, "area", "contacts", str(seeded["advising"]), str(library))
        assert set(batch) == {str(seeded["advising"]), str(library)}
        assert batch[str(library)] == []


class TestContactCommands:
    def test_search(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        found = _ok(cli_runner, "contact", "search", "jo")
        assert [c["contact_id"] for c in found] == [seeded["bob"]]

    def test_search_text_table(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        result = cli_runner.invoke(cli, ["contact", "search", "b"])
        assert result.exit_code == 0
        assert "Cara Brown" in result.output
        assert "Bob Jones" in result.output

    def test_show(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        contact = _ok(cli_runner, "contact", "show", str(seeded["bob"]))
        assert contact["info"]["position"] == "Academic Adviser"

    def test_update(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        updated = _ok(
            cli_runner, "contact", "update", str(seeded["bob"]), "--field", "phone=9035 5511", "--field", "position="
        )
        assert updated["info"] == {"first_name": "Bob", "last_name": "Jones", "phone": "9035 5511"}

    def test_bad_field(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        result = cli_runner.invoke(cli, ["contact", "update", str(seeded["bob"]), "--field", "phone"])
        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output

    def test_move_existing_contact(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        other = _ok(cli_runner, "collection", "new", str(seeded["advising"]))["collection_id"]
        _ok(cli_runner, "contact", "add", str(other), "--existing", str(seeded["bob"]))
        assert [c["contact_id"] for c in _ok(cli_runner, "collection", "contacts", str(seeded["team"]))] == [
            seeded["cara"]
        ]

    def test_detach_then_remove(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        _ok(cli_runner, "contact", "detach", str(seeded["bob"]), str(seeded["team"]))
        assert _ok(cli_runner, "contact", "remove", str(seeded["bob"]), "--yes") == {"success": True}

    def test_remove_returns_collection(self, cli_runner: CliRunner, seeded: dict[str, int]) -> None:
        former = _ok(cli_runner, "contact", "remove", str(seeded["cara"]), "--yes")
        assert former["collection_id"] == seeded["team"]
        result = cli_runner.invoke(cli, ["--json", "contact", "show", str(seeded["cara"])])
        assert result.exit_code == 1
