"""Subcommand modules for orgdir.

Provides register_commands() which uses deferred imports to keep
``orgdir --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the command groups and standalone commands on the root CLI group."""
    # --- Groups ---
    from orgdir.commands.area import area
    from orgdir.commands.collection import collection
    from orgdir.commands.contact import contact

    cli.add_command(area)
    cli.add_command(collection)
    cli.add_command(contact)

    # --- Standalone commands ---
    from orgdir.commands.check import check
    from orgdir.commands.init_cmd import init_cmd

    cli.add_command(init_cmd)
    cli.add_command(check)
