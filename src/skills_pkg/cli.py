"""CLI commands using Typer."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Optional

import typer
from rich.console import Console

from skills_pkg import __version__
from skills_pkg.agents import get_agent
from skills_pkg.console import Output, configure_logging
from skills_pkg.context import create_context
from skills_pkg.errors import SkillsPkgError
from skills_pkg.manifest import Skill
from skills_pkg.types import SOURCE_KINDS

if TYPE_CHECKING:
    from skills_pkg.context import AppContext
    from skills_pkg.types import UpdateResult

app = typer.Typer(
    name="skills-pkg",
    help="Install agent skills from git, npm, pip, cargo and Go module sources",
    no_args_is_help=True,
)

console = Console()
out = Output(console)

# Global options captured by the callback.
_options: dict[str, Path | None] = {"manifest": None}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"skills-pkg v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show debug logging")
    ] = False,
    manifest: Annotated[
        Optional[Path],
        typer.Option("--manifest", "-m", help="Manifest file (default ./.skillspkg.json)"),
    ] = None,
) -> None:
    """Install agent skills from git, npm, pip, cargo and Go module sources."""
    configure_logging(verbose)
    _options["manifest"] = manifest


def _get_context(_context: AppContext | None) -> AppContext:
    return _context or create_context(manifest_path=_options["manifest"])


def _fail(error: Exception) -> typer.Exit:
    out.show_error(str(error))
    return typer.Exit(1)


def _parse_options(values: list[str] | None) -> dict[str, str]:
    """Parse repeated KEY=VALUE options."""
    options: dict[str, str] = {}
    for value in values or []:
        key, sep, val = value.partition("=")
        if not sep or not key:
            out.show_error(f"Invalid option '{value}'. Use KEY=VALUE")
            raise typer.Exit(1)
        options[key.strip()] = val.strip()
    return options


@app.command()
def init(
    install_dir: Annotated[
        Optional[list[str]],
        typer.Option("--install-dir", "-d", help="Install target directory (repeatable)"),
    ] = None,
    agent: Annotated[
        Optional[list[str]],
        typer.Option("--agent", "-a", help="Use an agent's default skills directory (repeatable)"),
    ] = None,
    _context=None,
) -> None:
    """Create a new manifest."""
    ctx = _get_context(_context)
    targets = list(install_dir or [])
    try:
        for name in agent or []:
            targets.append(str(get_agent(name).resolve_agent_dir()))
        ctx.manifest.initialize(targets)
    except (SkillsPkgError, ValueError) as e:
        raise _fail(e) from e

    out.show_success(f"Created {ctx.manifest.path}")
    for target in targets:
        out.show_info(f"Install target: {target}")


@app.command()
def add(
    name: Annotated[str, typer.Argument(help="Skill name")],
    url: Annotated[str, typer.Argument(help="Git URL, package name, crate or module path")],
    source: Annotated[
        str, typer.Option("--source", "-s", help=f"Source type ({', '.join(SOURCE_KINDS)})")
    ] = "git",
    version: Annotated[
        str, typer.Option("--version", help="Version, tag, commit or branch (default: latest)")
    ] = "",
    subdir: Annotated[
        Optional[str], typer.Option("--subdir", help="Subdirectory holding the skill")
    ] = None,
    option: Annotated[
        Optional[list[str]],
        typer.Option("--option", "-o", help="Source option KEY=VALUE, e.g. registry=<url>"),
    ] = None,
    no_install: Annotated[
        bool, typer.Option("--no-install", help="Only record the skill in the manifest")
    ] = False,
    _context=None,
) -> None:
    """Add a skill to the manifest and install it."""
    ctx = _get_context(_context)
    skill = Skill(
        name=name,
        source=source,
        url=url,
        version=version,
        subdir=subdir or None,
        options=_parse_options(option),
    )

    try:
        ctx.manifest.add_skill(skill)
        out.show_success(f"Added skill '{name}'")
        if no_install:
            return
        outcomes = ctx.manager.install(name)
    except SkillsPkgError as e:
        raise _fail(e) from e

    out.show_install_outcomes(outcomes)


@app.command()
def install(
    name: Annotated[
        Optional[str], typer.Argument(help="Skill to install (all if not specified)")
    ] = None,
    _context=None,
) -> None:
    """Install skills from the manifest."""
    ctx = _get_context(_context)
    try:
        outcomes = ctx.manager.install(name)
    except SkillsPkgError as e:
        raise _fail(e) from e

    if not outcomes:
        out.show_info("No skills to install")
        return
    out.show_install_outcomes(outcomes)


def _update_to_dict(result: UpdateResult) -> dict:
    return {
        "skill": result.skill_name,
        "oldVersion": result.old_version,
        "newVersion": result.new_version,
        "hasUpdate": result.has_update,
        "files": [
            {"path": d.path, "status": d.status, "patch": d.patch}
            for d in result.file_diffs or []
        ],
    }


@app.command()
def update(
    names: Annotated[
        Optional[list[str]], typer.Argument(help="Skills to update (all if not specified)")
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Show available updates without applying them")
    ] = False,
    output: Annotated[str, typer.Option("--output", help="Output format: text or json")] = "text",
    _context=None,
) -> None:
    """Update skills to their latest versions."""
    if output not in ("text", "json"):
        out.show_error(f"Unknown output format '{output}'. Use text or json")
        raise typer.Exit(1)

    ctx = _get_context(_context)
    try:
        results = ctx.manager.update(names or None, dry_run=dry_run)
    except SkillsPkgError as e:
        raise _fail(e) from e

    if output == "json":
        typer.echo(json.dumps([_update_to_dict(r) for r in results], indent=2))
        return
    out.show_update_results(results, dry_run)


@app.command()
def uninstall(
    name: Annotated[str, typer.Argument(help="Skill to uninstall")],
    _context=None,
) -> None:
    """Remove a skill from all install targets and the manifest."""
    ctx = _get_context(_context)
    try:
        removed = ctx.manager.uninstall(name)
    except SkillsPkgError as e:
        raise _fail(e) from e

    for path in removed:
        out.show_info(f"Removed {path}")
    out.show_success(f"Uninstalled '{name}'")


@app.command()
def verify(
    _context=None,
) -> None:
    """Verify installed skills against recorded hashes."""
    ctx = _get_context(_context)
    try:
        summary = ctx.verifier.verify_all()
    except SkillsPkgError as e:
        raise _fail(e) from e

    out.show_verify_summary(summary)
    if summary.failure_count:
        raise typer.Exit(1)


@app.command("list")
def list_skills(
    _context=None,
) -> None:
    """List configured skills."""
    ctx = _get_context(_context)
    try:
        manifest = ctx.manifest.load()
    except SkillsPkgError as e:
        raise _fail(e) from e

    out.show_skills(manifest.skills, manifest.install_targets)


@app.command("add-target")
def add_target(
    directory: Annotated[str, typer.Argument(help="Install target directory")],
    _context=None,
) -> None:
    """Add an install target directory."""
    ctx = _get_context(_context)
    try:
        added = ctx.manifest.add_install_target(directory)
    except SkillsPkgError as e:
        raise _fail(e) from e

    if added:
        out.show_success(f"Added install target {directory}")
    else:
        out.show_warning(f"Install target {directory} is already configured")


if __name__ == "__main__":
    app()
