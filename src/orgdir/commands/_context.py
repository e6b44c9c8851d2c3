"""AppContext — shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``.  Provides lazy Directory initialization and centralized
result emission (stdout/stderr routing + exit codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from orgdir.domain.errors import DirectoryError
from orgdir.output.formatters import OutputSettings, format_result
from orgdir.services.result import ServiceResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from orgdir.config.settings import OrgdirSettings
    from orgdir.services.directory import Directory


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    The directory is opened on first use so ``--help`` and ``--version``
    never touch the database.
    """

    def __init__(self, settings: OrgdirSettings) -> None:
        self.settings = settings
        self._directory: Directory | None = None

        from orgdir.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @property
    def directory(self) -> Directory:
        """The directory façade (created lazily on first access)."""
        if self._directory is None:
            from orgdir.services.directory import Directory

            self._directory = Directory.from_settings(self.settings)
        return self._directory

    def run(
        self,
        op: str,
        func: Callable[[], Any],
        *,
        kind: str | None = None,
        entity_id: int | None = None,
    ) -> None:
        """Run *func* through :meth:`Directory.call` and emit the result.

        A database that cannot be opened is reported like any failed
        operation, under *op*.
        """
        try:
            directory = self.directory
        except DirectoryError as exc:
            self.emit(ServiceResult.failure(op, exc))
            return
        self.emit(directory.call(op, func, kind=kind, entity_id=entity_id))

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success (``result.ok``): writes to stdout, returns normally.
          Warnings are emitted to stderr so they don't pollute piped output.
        * Failure: writes to stderr, exits with code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)

    def close(self) -> None:
        if self._directory is not None:
            self._directory.close()
            self._directory = None
