"""Command group: collections, succession chains, split and merge."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from orgdir.commands._base import OrgGroup

if TYPE_CHECKING:
    from orgdir.commands._context import AppContext

_COLLECTION_EXAMPLES = """\
  orgdir collection new 31
  orgdir collection show 40
  orgdir collection split 40 101 102
  orgdir collection merge 40 41
  orgdir collection successor-add 40 41 --note "from 2025"
  orgdir collection primary 40"""


@click.group(cls=OrgGroup, examples=_COLLECTION_EXAMPLES)
def collection() -> None:
    """Manage the collections of contacts attached to areas."""


@collection.command()
@click.argument("collection_ref")
@click.pass_obj
def show(app: AppContext, collection_ref: str) -> None:
    """Show a collection with its contacts and successors."""
    app.run("collection_detail", lambda: app.directory.collection_detail(collection_ref))


@collection.command()
@click.argument("collection_ref")
@click.pass_obj
def contacts(app: AppContext, collection_ref: str) -> None:
    """List the contacts of a collection."""
    app.run("contacts", lambda: app.directory.collection(collection_ref).contacts())


@collection.command()
@click.argument("collection_ref")
@click.pass_obj
def successors(app: AppContext, collection_ref: str) -> None:
    """List the collections that directly follow this one."""
    app.run("successors", lambda: app.directory.collection(collection_ref).successors())


@collection.command()
@click.argument("area_ref")
@click.pass_obj
def new(app: AppContext, area_ref: str) -> None:
    """Create an empty collection for an area."""
    app.run("new_collection", lambda: app.directory.area(area_ref).new_collection(), kind="collection")


@collection.command()
@click.argument("collection_ref")
@click.pass_obj
def primary(app: AppContext, collection_ref: str) -> None:
    """Toggle the primary flag of a collection."""
    app.run("toggle_primary", lambda: app.directory.collection(collection_ref).toggle_primary(), kind="collection")


@collection.command(
    examples="""\
  orgdir collection split 40 101
  orgdir collection split 40 101 102 103"""
)
@click.argument("collection_ref")
@click.argument("contact_refs", nargs=-1, required=True)
@click.pass_obj
def split(app: AppContext, collection_ref: str, contact_refs: tuple[str, ...]) -> None:
    """Move the listed contacts into a new collection of the same area."""
    app.run("split", lambda: app.directory.collection(collection_ref).split(list(contact_refs)), kind="collection")


@collection.command()
@click.argument("target_ref")
@click.argument("source_ref")
@click.pass_obj
def merge(app: AppContext, target_ref: str, source_ref: str) -> None:
    """Fold SOURCE into TARGET and delete SOURCE."""
    app.run("merge", lambda: app.directory.collection(target_ref).merge(source_ref), kind="collection")


@collection.command(name="successor-add")
@click.argument("predecessor_ref")
@click.argument("successor_ref")
@click.option("--note", default=None, help="Note stored on the link.")
@click.pass_obj
def successor_add(app: AppContext, predecessor_ref: str, successor_ref: str, note: str | None) -> None:
    """Record that SUCCESSOR follows PREDECESSOR."""
    app.run(
        "add_successor",
        lambda: app.directory.collection(predecessor_ref).add_successor(successor_ref, note),
        kind="collection",
    )


@collection.command(name="successor-remove")
@click.argument("predecessor_ref")
@click.argument("successor_ref")
@click.pass_obj
def successor_remove(app: AppContext, predecessor_ref: str, successor_ref: str) -> None:
    """Remove the link between two collections."""
    app.run(
        "remove_successor",
        lambda: app.directory.collection(predecessor_ref).remove_successor(successor_ref),
        kind="collection",
    )
