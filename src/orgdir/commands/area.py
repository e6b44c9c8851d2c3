"""Command group: area navigation, search and tree mutation."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from orgdir.commands._base import OrgGroup

if TYPE_CHECKING:
    from orgdir.commands._context import AppContext

_AREA_EXAMPLES = """\
  orgdir area show root
  orgdir area children 12
  orgdir area tree root --depth 2
  orgdir area search root student housing
  orgdir area add 12 "Housing" --note "Level 2, Building 4"
  orgdir area move 31 12
  orgdir --json area contacts 31"""


@click.group(cls=OrgGroup, examples=_AREA_EXAMPLES)
def area() -> None:
    """Navigate and edit the area tree.  AREA may be an id or 'root'."""


# --- reads ---


@area.command(
    examples="""\
  orgdir area show root
  orgdir area show 12 --path Student Support --path Housing"""
)
@click.argument("area_ref")
@click.option("--path", "names", multiple=True, help="Descend through children with these names.")
@click.pass_obj
def show(app: AppContext, area_ref: str, names: tuple[str, ...]) -> None:
    """Show an area, optionally descending by child names."""
    if names:
        app.run("descend", lambda: app.directory.area(area_ref).descend(list(names)))
    else:
        app.run("area", lambda: app.directory.area(area_ref).area)


@area.command()
@click.argument("area_ref")
@click.pass_obj
def parent(app: AppContext, area_ref: str) -> None:
    """Show the parent of an area."""
    app.run("parent", lambda: app.directory.area(area_ref).parent())


@area.command()
@click.argument("area_ref")
@click.pass_obj
def children(app: AppContext, area_ref: str) -> None:
    """List the direct children of an area, sorted by name."""
    app.run("children", lambda: app.directory.area(area_ref).children())


@area.command(
    examples="""\
  orgdir area tree root
  orgdir area tree 12 --depth 1"""
)
@click.argument("area_ref")
@click.option("--depth", type=int, default=None, help="Maximum depth below the area.")
@click.pass_obj
def tree(app: AppContext, area_ref: str, depth: int | None) -> None:
    """Show the subtree under an area."""
    app.run("subtree", lambda: app.directory.area(area_ref).subtree(depth))


@area.command()
@click.argument("area_ref")
@click.option("--base", default=None, help="Start the path at this ancestor instead of the top.")
@click.pass_obj
def path(app: AppContext, area_ref: str, base: str | None) -> None:
    """Show the path from the top (or BASE) down to an area."""

    def run() -> object:
        handle = app.directory.area(area_ref)
        return handle.path(app.directory.area(base).area if base else None)

    app.run("path", run)


@area.command(
    examples="""\
  orgdir area search root hous
  orgdir area search 12 student advis --include-root"""
)
@click.argument("area_ref")
@click.argument("terms", nargs=-1, required=True)
@click.option("--include-root/--no-include-root", default=None, help="Keep the search base in each path.")
@click.pass_obj
def search(app: AppContext, area_ref: str, terms: tuple[str, ...], include_root: bool | None) -> None:
    """Search below an area by area name or contact position."""
    app.run("search", lambda: app.directory.area(area_ref).search(" ".join(terms), include_root))


@area.command()
@click.pass_obj
def orphans(app: AppContext) -> None:
    """List detached areas."""
    app.run("orphans", lambda: app.directory.orphan_areas())


@area.command()
@click.argument("area_refs", nargs=-1, required=True)
@click.pass_obj
def contacts(app: AppContext, area_refs: tuple[str, ...]) -> None:
    """Show the collections and contacts of one or more areas."""
    if len(area_refs) == 1:
        app.run("contacts_by_area", lambda: app.directory.area(area_refs[0]).contacts_by_area())
    else:
        app.run("batch_contacts_by_area", lambda: app.directory.batch_contacts_by_area(list(area_refs)))


@area.command()
@click.argument("area_ref")
@click.option("--heads", is_flag=True, help="Only collections without a predecessor.")
@click.pass_obj
def collections(app: AppContext, area_ref: str, heads: bool) -> None:
    """List the collections of an area."""
    if heads:
        app.run("head_collections", lambda: app.directory.area(area_ref).head_collections())
    else:
        app.run("contacts_by_area", lambda: app.directory.area(area_ref).contacts_by_area())


@area.command()
@click.argument("area_ref")
@click.pass_obj
def count(app: AppContext, area_ref: str) -> None:
    """Count contacts in collections below an area."""
    app.run("descendant_contact_count", lambda: app.directory.area(area_ref).descendant_contact_count())


# --- mutations ---


@area.command()
@click.argument("parent_ref")
@click.argument("name")
@click.option("--note", default=None, help="Free-text note.")
@click.pass_obj
def add(app: AppContext, parent_ref: str, name: str, note: str | None) -> None:
    """Create an area named NAME under PARENT."""
    app.run("insert_child", lambda: app.directory.area(parent_ref).insert_child(name, note), kind="area")


@area.command()
@click.argument("area_ref")
@click.option("--name", default=None, help="New name.")
@click.option("--note", default=None, help="New note (empty string clears it).")
@click.pass_obj
def update(app: AppContext, area_ref: str, name: str | None, note: str | None) -> None:
    """Rename an area or change its note."""
    fields = {key: value for key, value in (("name", name), ("note", note)) if value is not None}
    app.run("update_area", lambda: app.directory.area(area_ref).update(fields), kind="area")


@area.command()
@click.argument("area_ref")
@click.argument("new_parent_ref")
@click.pass_obj
def move(app: AppContext, area_ref: str, new_parent_ref: str) -> None:
    """Move an area (with its subtree) under NEW_PARENT."""

    def run() -> object:
        directory = app.directory
        return directory.area(area_ref).reparent(directory.area(new_parent_ref).area)

    app.run("reparent", run, kind="area")


@area.command()
@click.argument("area_ref")
@click.pass_obj
def detach(app: AppContext, area_ref: str) -> None:
    """Detach an area from its parent, keeping it as an orphan."""
    app.run("detach_area", lambda: app.directory.area(area_ref).detach(), kind="area")


@area.command()
@click.argument("area_ref")
@click.confirmation_option(prompt="Remove this area, its subtree and their collections?")
@click.pass_obj
def remove(app: AppContext, area_ref: str) -> None:
    """Remove an area, its subtree and every collection they own."""
    app.run("remove_area", lambda: app.directory.area(area_ref).remove(), kind="area")


@area.command(name="import")
@click.argument("area_ref")
@click.argument("datafile", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def import_(app: AppContext, area_ref: str, datafile: Path) -> None:
    """Bulk-import areas and contacts from DATAFILE below an area."""
    app.run("bulk_import", lambda: app.directory.area(area_ref).bulk_import(datafile), kind="area")
