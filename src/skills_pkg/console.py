"""Terminal output for the command-line interface."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from skills_pkg.manifest import Skill
from skills_pkg.types import InstallOutcome, UpdateResult, VerifySummary


def configure_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Route skills_pkg log records through rich.

    Args:
        verbose: Emit DEBUG records instead of WARNING and above.
        console: Console to write to. Defaults to stderr.
    """
    logger = logging.getLogger("skills_pkg")
    logger.handlers.clear()
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=False,
        show_path=verbose,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


class Output:
    """Non-interactive output helpers."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def show_success(self, message: str) -> None:
        """Show success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def show_error(self, message: str) -> None:
        """Show error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def show_warning(self, message: str) -> None:
        """Show warning message."""
        self.console.print(f"[yellow]![/yellow] {message}")

    def show_info(self, message: str) -> None:
        """Show info message."""
        self.console.print(f"[blue]i[/blue] {message}")

    def show_skills(self, skills: list[Skill], targets: list[str]) -> None:
        """Display configured skills and install targets.

        Args:
            skills: Skills from the manifest.
            targets: Install target directories.
        """
        if not targets:
            self.console.print("[yellow]No install targets configured[/yellow]")
        else:
            self.console.print("[bold]Install targets[/bold]")
            for target in targets:
                self.console.print(f"  {target}")

        if not skills:
            self.console.print("[yellow]No skills configured[/yellow]")
            return

        table = Table(title="Skills")
        table.add_column("Name", style="cyan")
        table.add_column("Source")
        table.add_column("URL")
        table.add_column("Version")
        table.add_column("Hash", style="dim")

        for skill in skills:
            table.add_row(
                skill.name,
                skill.source,
                skill.url,
                skill.version or "-",
                skill.hash_value or "-",
            )

        self.console.print(table)

    def show_install_outcomes(self, outcomes: list[InstallOutcome]) -> None:
        for outcome in outcomes:
            version = outcome.version or "(from go.mod)"
            self.show_success(
                f"Installed '{outcome.skill_name}' {version} "
                f"to {len(outcome.installed_paths)} target(s)"
            )
            for mismatch in outcome.hash_mismatches:
                self.show_warning(f"Hash verification failed: {mismatch}")

    def show_update_results(self, results: list[UpdateResult], dry_run: bool) -> None:
        """Display update results, including file diffs for dry runs."""
        if not results:
            self.show_info("No skills to update")
            return

        for result in results:
            old = result.old_version or "-"
            if not result.has_update:
                self.show_info(f"'{result.skill_name}' is up to date ({result.new_version})")
            elif dry_run:
                self.show_info(
                    f"'{result.skill_name}' can be updated: {old} -> {result.new_version}"
                )
            else:
                self.show_success(f"Updated '{result.skill_name}': {old} -> {result.new_version}")

            for diff in result.file_diffs or []:
                colour = {"added": "green", "removed": "red"}.get(diff.status, "yellow")
                self.console.print(f"  [{colour}]{diff.status:<8}[/{colour}] {diff.path}")
                if diff.patch:
                    self.console.print(diff.patch, markup=False, highlight=False)

    def show_verify_summary(self, summary: VerifySummary) -> None:
        """Display verification results."""
        if not summary.results:
            self.show_info("Nothing to verify")
            return

        table = Table(title="Verification")
        table.add_column("Skill", style="cyan")
        table.add_column("Directory")
        table.add_column("Result")

        for result in summary.results:
            if result.skipped:
                status = "[dim]skipped (go.mod)[/dim]"
            elif result.match:
                status = "[green]ok[/green]"
            else:
                status = "[red]mismatch[/red]"
            table.add_row(result.skill_name, str(result.install_dir), status)

        self.console.print(table)
        self.console.print(
            f"{summary.success_count} ok, {summary.failure_count} failed, "
            f"{summary.skipped_count} skipped"
        )
