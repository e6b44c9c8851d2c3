"""Shared pytest fixtures and test helpers for orgdir tests."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from orgdir.config.models import OrgdirConfig
from orgdir.domain.errors import StoreFailure
from orgdir.domain.models import Area, Collection, Contact
from orgdir.infrastructure.store import SqlGraphStore
from orgdir.plugins.manager import PluginManager
from orgdir.services.directory import Directory


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def config() -> OrgdirConfig:
    return OrgdirConfig()


@pytest.fixture
def store(tmp_path: Path) -> SqlGraphStore:
    """Graph store over a fresh SQLite file."""
    s = SqlGraphStore.open(tmp_path / "orgdir.db")
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def plugins() -> PluginManager:
    return PluginManager()


@pytest.fixture
def directory(store: SqlGraphStore, config: OrgdirConfig, plugins: PluginManager) -> Directory:
    """Directory with an empty store (no root yet)."""
    return Directory(store, config, plugins)


@dataclass
class Sample:
    """The seeded directory used across service tests.

    13MELB
    ├── Library
    │   └── Special Collections
    └── Student Support
        ├── Advising        (collection ``advising_team``: Bob Jones, Cara Brown)
        └── Housing         (collection ``housing_team``: Ann Smith)
    """

    root: Area
    support: Area
    housing: Area
    advising: Area
    library: Area
    special: Area
    housing_team: Collection
    advising_team: Collection
    ann: Contact
    bob: Contact
    cara: Contact


@pytest.fixture
def sample(directory: Directory) -> Sample:
    h = directory.hierarchy
    c = directory.collections
    root = directory.init_root("13MELB")
    support = h.insert_child(root, "Student Support")
    library = h.insert_child(root, "Library", note="Baillieu building")
    housing = h.insert_child(support, "Housing")
    advising = h.insert_child(support, "Advising")
    special = h.insert_child(library, "Special Collections")

    housing_team = c.new_collection(housing)
    ann = c.new_contact(
        housing_team,
        {"first_name": "Ann", "last_name": "Smith", "position": "Housing Officer", "url": "https://example.org/ann"},
    )
    advising_team = c.new_collection(advising)
    bob = c.new_contact(advising_team, {"first_name": "Bob", "last_name": "Jones", "position": "Academic Adviser"})
    cara = c.new_contact(advising_team, {"first_name": "Cara", "last_name": "Brown", "position": "Student Adviser"})

    return Sample(
        root=root,
        support=support,
        housing=housing,
        advising=advising,
        library=library,
        special=special,
        housing_team=housing_team,
        advising_team=advising_team,
        ann=ann,
        bob=bob,
        cara=cara,
    )


@pytest.fixture
def _isolated_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to a temp directory so the CLI creates an isolated database.

    Use via ``@pytest.mark.usefixtures("_isolated_directory")`` on command
    test classes.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ORGDIR_CONFIG", raising=False)
    for var in ("ORGDIR_STORE__PATH", "ORGDIR_JSON_OUTPUT", "ORGDIR_QUIET"):
        monkeypatch.delenv(var, raising=False)


class FailingStore:
    """Delegates to a real store but fails whenever *fail_on* is executed."""

    def __init__(self, inner: Any, fail_on: Any) -> None:
        self._inner = inner
        self._fail_on = fail_on

    @property
    def atomic(self) -> bool:
        return self._inner.atomic

    def execute(self, statement: Any, params: Any = None) -> list[dict[str, Any]]:
        if statement is self._fail_on:
            raise StoreFailure("injected failure")
        return self._inner.execute(statement, params)

    @contextmanager
    def transaction(self) -> Iterator[FailingStore]:
        with self._inner.transaction() as tx:
            yield FailingStore(tx, self._fail_on)


@pytest.fixture
def failing_store() -> type[FailingStore]:
    """The :class:`FailingStore` wrapper, for injecting a store error mid-operation."""
    return FailingStore


@pytest.fixture
def loose_store(store: SqlGraphStore) -> SqlGraphStore:
    """Second handle on the same database with per-statement commits (``atomic = false``)."""
    return SqlGraphStore(store.engine, atomic=False)
