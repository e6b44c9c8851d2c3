"""Command: directory integrity report."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from orgdir.commands._base import OrgCommand

if TYPE_CHECKING:
    from orgdir.commands._context import AppContext


@click.command(
    cls=OrgCommand,
    examples="""\
  orgdir check
  orgdir check --errors-only
  orgdir --json check""",
)
@click.option("--errors-only", is_flag=True, help="Hide warnings.")
@click.pass_obj
def check(app: AppContext, errors_only: bool) -> None:
    """Report structural problems in the directory graph."""

    def run() -> dict:
        report = app.directory.check()
        if errors_only:
            issues = [issue for issue in report["issues"] if issue["severity"] == "error"]
            report = {**report, "issues": issues, "count": len(issues)}
        return report

    app.run("check", run)
