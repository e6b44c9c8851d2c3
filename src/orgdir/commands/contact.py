"""Command group: contacts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from orgdir.commands._base import OrgGroup

if TYPE_CHECKING:
    from orgdir.commands._context import AppContext

_CONTACT_EXAMPLES = """\
  orgdir contact search ann sm
  orgdir contact add 40 --field first_name=Ann --field last_name=Smith --url https://example.org/ann
  orgdir contact add 40 --existing 101
  orgdir contact update 101 --field position="Senior Officer"
  orgdir contact detach 101 40"""


def _parse_fields(pairs: tuple[str, ...]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--field")
        fields[key.strip()] = value
    return fields


@click.group(cls=OrgGroup, examples=_CONTACT_EXAMPLES)
def contact() -> None:
    """Look up and edit contacts."""


@contact.command()
@click.argument("contact_ref")
@click.pass_obj
def show(app: AppContext, contact_ref: str) -> None:
    """Show a contact."""
    app.run("contact", lambda: app.directory.contact(contact_ref).contact)


@contact.command()
@click.argument("terms", nargs=-1, required=True)
@click.pass_obj
def search(app: AppContext, terms: tuple[str, ...]) -> None:
    """Find contacts whose first or last name starts with every term."""
    app.run("contact_search", lambda: app.directory.contact_search(" ".join(terms)))


@contact.command()
@click.argument("collection_ref")
@click.option("--field", "pairs", multiple=True, help="KEY=VALUE contact field (repeatable).")
@click.option("--url", default=None, help="Profile URL.")
@click.option("--existing", default=None, help="Move an existing contact into the collection instead.")
@click.pass_obj
def add(app: AppContext, collection_ref: str, pairs: tuple[str, ...], url: str | None, existing: str | None) -> None:
    """Add a new (or existing) contact to a collection."""
    if existing is not None:
        info: Any = existing
    else:
        info = _parse_fields(pairs)
        if url:
            info["url"] = url
    app.run("new_contact", lambda: app.directory.collection(collection_ref).new_contact(info), kind="contact")


@contact.command()
@click.argument("contact_ref")
@click.option("--field", "pairs", multiple=True, help="KEY=VALUE field to set; KEY= clears it.")
@click.option("--url", default=None, help="Replace the profile URL ('' removes it).")
@click.pass_obj
def update(app: AppContext, contact_ref: str, pairs: tuple[str, ...], url: str | None) -> None:
    """Update contact fields."""
    fields = _parse_fields(pairs)
    if url is not None:
        fields["url"] = url
    app.run("update_contact", lambda: app.directory.contact(contact_ref).update(fields), kind="contact")


@contact.command()
@click.argument("contact_ref")
@click.argument("collection_ref")
@click.pass_obj
def detach(app: AppContext, contact_ref: str, collection_ref: str) -> None:
    """Remove a contact from a collection without deleting it."""
    app.run("detach_contact", lambda: app.directory.contact(contact_ref).detach(collection_ref), kind="contact")


@contact.command()
@click.argument("contact_ref")
@click.confirmation_option(prompt="Delete this contact?")
@click.pass_obj
def remove(app: AppContext, contact_ref: str) -> None:
    """Delete a contact."""
    app.run("remove_contact", lambda: app.directory.contact(contact_ref).remove(), kind="contact")
