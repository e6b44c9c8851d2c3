"""Command: create the directory database and its root area."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from orgdir.commands._base import OrgCommand

if TYPE_CHECKING:
    from orgdir.commands._context import AppContext


@click.command(
    "init",
    cls=OrgCommand,
    examples="""\
  orgdir init
  orgdir init --root-name "University of Melbourne"
  ORGDIR_STORE__PATH=/srv/org.db orgdir init""",
)
@click.option("--root-name", default=None, help="Name of the root area (default: directory.root_name).")
@click.option("--note", default=None, help="Note on the root area.")
@click.pass_obj
def init_cmd(app: AppContext, root_name: str | None, note: str | None) -> None:
    """Create the database (if needed) and the root area."""
    app.run("init", lambda: app.directory.init_root(root_name, note), kind="area")
