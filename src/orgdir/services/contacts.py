"""ContactStore — contact field updates, detachment and removal."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from orgdir.domain.models import Collection, Contact
from orgdir.domain.types import EdgeType, NodeLabel
from orgdir.infrastructure import queries
from orgdir.services.base import BaseService

if TYPE_CHECKING:
    from collections.abc import Mapping

    from orgdir.domain.refs import CollectionRef, ContactRef
    from orgdir.infrastructure.store import GraphStore

logger = logging.getLogger(__name__)


class ContactStore(BaseService):
    """Owns contact mutation."""

    def detach(self, contact: ContactRef, collection: CollectionRef) -> Contact:
        """Remove *contact* from *collection*; the contact itself is kept."""
        contact = self.load_contact(contact)
        collection = self.load_collection(collection)
        self._store.execute(
            queries.delete_edge_between(),
            {
                "source_id": contact.contact_id,
                "target_id": collection.collection_id,
                "edge_type": EdgeType.IN_COLLECTION.value,
            },
        )
        return contact

    def remove(self, contact: ContactRef) -> Collection | None:
        """Delete *contact* with its URL and availability edges.

        Returns the collection it belonged to, or None if it had none.
        """
        contact = self.load_contact(contact)
        with self._store.transaction() as tx:
            memberships = tx.execute(queries.memberships_of_contacts(), {"ids": [contact.contact_id]})
            former = self.load_collection(memberships[0]["collection_id"], tx) if memberships else None
            url_ids = self._url_ids(tx, contact.contact_id)
            doomed = [contact.contact_id, *url_ids]
            tx.execute(queries.delete_edges_touching(), {"ids": doomed})
            tx.execute(queries.delete_nodes(), {"ids": doomed})
        logger.debug("Removed contact %s", contact.contact_id)
        return former

    def update(self, contact: ContactRef, fields: Mapping[str, Any]) -> Contact:
        """Apply whitelisted *fields* (``contacts.fields`` plus ``url``).

        A ``None`` or empty value clears the field.  Unknown keys are ignored.
        """
        contact = self.load_contact(contact)
        allowed = self._config.contacts.fields
        info = dict(contact.info)
        changed = False
        for key, value in fields.items():
            if key not in allowed:
                continue
            changed = True
            if value is None or value == "":
                info.pop(key, None)
            else:
                info[key] = value

        url = contact.url
        replace_url = "url" in fields
        if replace_url:
            url = str(fields["url"]) if fields["url"] else None
        if not changed and not replace_url:
            return contact

        with self._store.transaction() as tx:
            if changed:
                self._update_node(tx, contact.contact_id, None, info)
            if replace_url:
                self._replace_url(tx, contact.contact_id, url)
        return contact.model_copy(update={"info": info, "url": url})

    @staticmethod
    def _url_ids(store: GraphStore, contact_id: int) -> list[int]:
        rows = store.execute(
            queries.outgoing_targets(),
            {"ids": [contact_id], "edge_type": EdgeType.HAS_URL.value},
        )
        return [row["target_id"] for row in rows]

    def _replace_url(self, store: GraphStore, contact_id: int, url: str | None) -> None:
        old = self._url_ids(store, contact_id)
        if old:
            store.execute(queries.delete_edges_touching(), {"ids": old})
            store.execute(queries.delete_nodes(), {"ids": old})
        if url:
            url_id = self._create_node(store, NodeLabel.URL, properties={"url": url})
            self._create_edge(store, contact_id, url_id, EdgeType.HAS_URL)
