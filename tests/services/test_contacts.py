"""Tests for ContactStore."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select

from orgdir.domain.errors import NotFoundError
from orgdir.infrastructure.database.schema import nodes
from orgdir.services.directory import Directory

if TYPE_CHECKING:
    from tests.conftest import Sample


def _url_count(directory: Directory) -> int:
    return len(directory.store.execute(select(nodes.c.id).where(nodes.c.label == "Url")))


class TestUpdate:
    def test_set_and_clear_fields(self, directory: Directory, sample: Sample) -> None:
        updated = directory.contacts.update(sample.bob, {"phone": "9035 5511", "position": ""})
        assert updated.info["phone"] == "9035 5511"
        assert "position" not in updated.info
        stored = directory.collections.load_contact(sample.bob.contact_id)
        assert stored.info == updated.info

    def test_none_clears(self, directory: Directory, sample: Sample) -> None:
        updated = directory.contacts.update(sample.cara, {"last_name": None})
        assert updated.last_name == ""

    def test_unknown_keys_ignored(self, directory: Directory, sample: Sample) -> None:
        assert directory.contacts.update(sample.bob, {"favourite_colour": "green"}) == sample.bob

    def test_replace_url(self, directory: Directory, sample: Sample) -> None:
        updated = directory.contacts.update(sample.ann, {"url": "https://example.org/ann-smith"})
        assert updated.url == "https://example.org/ann-smith"
        assert directory.collections.load_contact(sample.ann.contact_id).url == "https://example.org/ann-smith"
        assert _url_count(directory) == 1

    def test_clear_url(self, directory: Directory, sample: Sample) -> None:
        directory.contacts.update(sample.ann, {"url": ""})
        assert directory.collections.load_contact(sample.ann.contact_id).url is None
        assert _url_count(directory) == 0

    def test_add_url(self, directory: Directory, sample: Sample) -> None:
        directory.contacts.update(sample.bob, {"url": "https://example.org/bob"})
        assert directory.collections.load_contact(sample.bob.contact_id).url == "https://example.org/bob"

    def test_model_is_not_mutated(self, directory: Directory, sample: Sample) -> None:
        directory.contacts.update(sample.bob, {"phone": "1"})
        assert "phone" not in sample.bob.info


class TestDetach:
    def test_contact_survives(self, directory: Directory, sample: Sample) -> None:
        directory.contacts.detach(sample.bob, sample.advising_team)
        assert [c.contact_id for c in directory.collections.contacts(sample.advising_team)] == [
            sample.cara.contact_id
        ]
        assert directory.collections.load_contact(sample.bob.contact_id).first_name == "Bob"

    def test_not_a_member(self, directory: Directory, sample: Sample) -> None:
        directory.contacts.detach(sample.ann, sample.advising_team)
        assert len(directory.collections.contacts(sample.advising_team)) == 2


class TestRemove:
    def test_returns_former_collection(self, directory: Directory, sample: Sample) -> None:
        former = directory.contacts.remove(sample.ann)
        assert former.collection_id == sample.housing_team.collection_id
        assert directory.collections.contacts(sample.housing_team) == []
        assert _url_count(directory) == 0
        with pytest.raises(NotFoundError):
            directory.collections.load_contact(sample.ann.contact_id)

    def test_detached_contact_returns_none(self, directory: Directory, sample: Sample) -> None:
        directory.contacts.detach(sample.bob, sample.advising_team)
        assert directory.contacts.remove(sample.bob) is None

    def test_unknown_contact(self, directory: Directory, sample: Sample) -> None:
        with pytest.raises(NotFoundError):
            directory.contacts.remove(sample.advising_team.collection_id)
