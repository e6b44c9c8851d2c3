"""Click classes shared by the ``area``, ``collection`` and ``contact`` groups.

Every orgdir command can carry an ``examples`` block: invocations against
a real directory (``orgdir area search root hous``), shown by ``--examples``
instead of cluttering ``--help``.
"""

from __future__ import annotations

import textwrap
from typing import Any

import click


class _ExamplesMixin:
    """Adds the eager ``--examples`` flag when an ``examples`` block is given."""

    params: list[click.Parameter]

    def _init_examples(self, examples: str | None) -> None:
        self.examples = textwrap.dedent(examples).strip("\n") if examples else None
        if self.examples:
            self.params.append(
                click.Option(
                    ["--examples"],
                    is_flag=True,
                    expose_value=False,
                    is_eager=True,
                    callback=self._show_examples,
                    help="Show example invocations and exit.",
                )
            )

    def _show_examples(self, ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value:
            return
        click.echo(f"Examples for '{ctx.command_path}':\n")
        click.echo(self.examples)
        ctx.exit(0)


class OrgCommand(_ExamplesMixin, click.Command):
    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._init_examples(examples)


class OrgGroup(_ExamplesMixin, click.Group):
    """Command group whose subcommands are :class:`OrgCommand` by default."""

    command_class = OrgCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._init_examples(examples)
