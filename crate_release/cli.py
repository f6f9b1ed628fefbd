"""Command-line interface for crate-release.

Provides commands for:
- release: Release the selected workspace packages
- validate: Check release preconditions without changing anything
- replace: Preview or apply pre-release replacements
- config: Show the effective workspace configuration
"""

from pathlib import Path

import tomlkit
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from crate_release import __version__
from crate_release import plan as release_plan
from crate_release.cargo.index import CratesIndex
from crate_release.cargo.metadata import Workspace, load_workspace
from crate_release.config.loader import (
    load_environment,
    load_workspace_config,
    parse_config,
)
from crate_release.config.models import ReleaseConfig
from crate_release.exceptions import EXIT_FAILURE, ReleaseError, ReleaseExit
from crate_release.gates import GateContext, GateRegistry, GateResult, GateSeverity
from crate_release.plan import PackageRelease, Selection
from crate_release.replace import do_file_replacements
from crate_release.utils.console import configure_logging
from crate_release.utils.console import console as err_console
from crate_release.utils.version import TargetVersion
from crate_release.workflow import ReleaseWorkflow

app = typer.Typer(
    name="crate-release",
    help="Release pipeline for Cargo workspaces",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for command output; diagnostics go to stderr
console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"crate-release version {__version__}")
        raise typer.Exit()


def report_error(error: ReleaseError) -> None:
    err_console.print(f"[red]Error:[/red] {escape(str(error))}")


def build_overrides(
    sign: bool = False,
    sign_commit: bool = False,
    sign_tag: bool = False,
    allow_branch: list[str] | None = None,
    registry: str | None = None,
    no_publish: bool = False,
    no_verify: bool = False,
    no_push: bool = False,
    push_remote: str | None = None,
    no_tag: bool = False,
    tag_prefix: str | None = None,
    tag_name: str | None = None,
    dependent_version: str | None = None,
) -> ReleaseConfig:
    """Configuration layer holding only the flags given on the command line."""
    values: dict[str, object] = {}
    if sign or sign_commit:
        values["sign_commit"] = True
    if sign or sign_tag:
        values["sign_tag"] = True
    if allow_branch:
        values["allow_branch"] = allow_branch
    if registry is not None:
        values["registry"] = registry
    if no_publish:
        values["publish"] = False
    if no_verify:
        values["verify"] = False
    if no_push:
        values["push"] = False
    if push_remote is not None:
        values["push_remote"] = push_remote
    if no_tag:
        values["tag"] = False
    if tag_prefix is not None:
        values["tag_prefix"] = tag_prefix
    if tag_name is not None:
        values["tag_name"] = tag_name
    if dependent_version is not None:
        values["dependent_version"] = dependent_version
    return parse_config(values, "command-line arguments")


def load_release(
    manifest_path: Path | None,
    custom_config: Path | None,
    isolated: bool,
    overrides: ReleaseConfig | None,
) -> tuple[Workspace, ReleaseConfig, dict[str, PackageRelease]]:
    workspace = load_workspace(manifest_path)
    ws_config = load_workspace_config(
        workspace.root, custom_config=custom_config, isolated=isolated, overrides=overrides
    )
    packages = release_plan.load(
        workspace, custom_config=custom_config, isolated=isolated, overrides=overrides
    )
    return workspace, ws_config, packages


def display_gate_results(
    results: list[tuple[str, GateResult]],
    title: str = "Release Checks",
) -> bool:
    """Display gate results in a table.

    Returns:
        True if no blocking check failed
    """
    table = Table(title=title)
    table.add_column("Status", style="bold", width=8)
    table.add_column("Check", style="cyan")
    table.add_column("Category", style="dim")
    table.add_column("Message")

    for name, result in results:
        if result.blocking:
            status = "[red]FAIL[/red]"
        elif not result.passed and result.severity == GateSeverity.WARNING:
            status = "[yellow]WARN[/yellow]"
        else:
            status = "[green]PASS[/green]"
        gate_class = GateRegistry.get(name)
        category = gate_class.category if gate_class else ""
        table.add_row(status, name, category, escape(result.message))

    console.print(table)

    for _, result in results:
        if not result.passed and result.details:
            console.print(f"\n[red]Details:[/red] {escape(result.details)}")
        if not result.passed and result.fix_command:
            console.print(f"[yellow]Fix:[/yellow] {escape(result.fix_command)}")

    return not any(result.blocking for _, result in results)


@app.callback()
def main(
    version: bool = typer.Option(  # noqa: B008
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Release pipeline for Cargo workspaces.

    Verifies, bumps, publishes, tags and pushes the crates of a workspace.
    Runs as a dry-run unless --execute is given.
    """


@app.command()
def release(
    level: str | None = typer.Argument(  # noqa: B008
        None,
        help="Bump level (major, minor, patch, release, rc, beta, alpha) or a version",
    ),
    metadata: str | None = typer.Option(  # noqa: B008
        None, "--metadata", "-m", help="Semver build metadata for the new version"
    ),
    package: list[str] = typer.Option(  # noqa: B008
        [], "--package", "-p", help="Package to release (repeatable)"
    ),
    workspace: bool = typer.Option(  # noqa: B008
        False, "--workspace", "--all", help="Release every workspace member"
    ),
    exclude: list[str] = typer.Option(  # noqa: B008
        [], "--exclude", help="Package to leave out (repeatable)"
    ),
    execute: bool = typer.Option(  # noqa: B008
        False, "--execute", "-x", help="Actually perform the release"
    ),
    no_confirm: bool = typer.Option(  # noqa: B008
        False, "--no-confirm", help="Skip the confirmation prompt"
    ),
    prev_tag_name: str | None = typer.Option(  # noqa: B008
        None, "--prev-tag-name", help="Tag to detect changes against"
    ),
    manifest_path: Path | None = typer.Option(  # noqa: B008
        None, "--manifest-path", help="Path to Cargo.toml"
    ),
    config: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help="Extra configuration file (TOML or YAML)"
    ),
    isolated: bool = typer.Option(  # noqa: B008
        False, "--isolated", help="Ignore implicit configuration files"
    ),
    sign: bool = typer.Option(  # noqa: B008
        False, "--sign", help="Sign commits and tags"
    ),
    sign_commit: bool = typer.Option(  # noqa: B008
        False, "--sign-commit", help="Sign commits"
    ),
    sign_tag: bool = typer.Option(  # noqa: B008
        False, "--sign-tag", help="Sign tags"
    ),
    allow_branch: list[str] = typer.Option(  # noqa: B008
        [], "--allow-branch", help="Branch glob a release may run from"
    ),
    registry: str | None = typer.Option(  # noqa: B008
        None, "--registry", help="Registry to publish to"
    ),
    no_publish: bool = typer.Option(  # noqa: B008
        False, "--no-publish", help="Do not publish"
    ),
    no_verify: bool = typer.Option(  # noqa: B008
        False, "--no-verify", help="Do not verify the build when publishing"
    ),
    no_push: bool = typer.Option(  # noqa: B008
        False, "--no-push", help="Do not push"
    ),
    push_remote: str | None = typer.Option(  # noqa: B008
        None, "--push-remote", help="Remote to push to"
    ),
    no_tag: bool = typer.Option(  # noqa: B008
        False, "--no-tag", help="Do not create tags"
    ),
    tag_prefix: str | None = typer.Option(  # noqa: B008
        None, "--tag-prefix", help="Prefix for tag names"
    ),
    tag_name: str | None = typer.Option(  # noqa: B008
        None, "--tag-name", help="Tag name template"
    ),
    dependent_version: str | None = typer.Option(  # noqa: B008
        None,
        "--dependent-version",
        help="How dependents' requirements follow: upgrade, fix, error, warn, ignore",
    ),
    verbose: int = typer.Option(  # noqa: B008
        0, "--verbose", "-v", count=True, help="More output (repeatable)"
    ),
    quiet: bool = typer.Option(  # noqa: B008
        False, "--quiet", "-q", help="Only show errors"
    ),
) -> None:
    """Release the selected packages of a Cargo workspace.

    LEVEL can be:
    - A bump level: major, minor, patch, release, rc, beta, alpha
    - An explicit version: 1.2.3
    - Omitted, to release the current versions

    Examples:
        crate-release release patch            # dry-run of 1.0.0 -> 1.0.1
        crate-release release minor --execute  # 1.0.0 -> 1.1.0
        crate-release release -p core rc -x    # core 1.0.0 -> 1.0.1-rc.1
    """
    configure_logging(-1 if quiet else verbose)
    try:
        target = TargetVersion.parse(level) if level else None
        settings = load_environment()
        overrides = build_overrides(
            sign=sign,
            sign_commit=sign_commit,
            sign_tag=sign_tag,
            allow_branch=allow_branch,
            registry=registry,
            no_publish=no_publish,
            no_verify=no_verify,
            no_push=no_push,
            push_remote=push_remote,
            no_tag=no_tag,
            tag_prefix=tag_prefix,
            tag_name=tag_name,
            dependent_version=dependent_version,
        )
        ws, ws_config, packages = load_release(manifest_path, config, isolated, overrides)

        workflow = ReleaseWorkflow(
            workspace=ws,
            config=ws_config,
            packages=packages,
            selection=Selection(tuple(package), workspace, tuple(exclude)),
            target=target,
            metadata=metadata,
            prev_tag_name=prev_tag_name,
            execute=execute,
            no_confirm=no_confirm,
            index=CratesIndex(settings.index_url),
            settings=settings,
        )
        code = workflow.run()
    except ReleaseError as e:
        report_error(e)
        raise typer.Exit(code=e.exit_code) from None

    if code:
        raise typer.Exit(code=code)


@app.command()
def validate(
    level: str | None = typer.Argument(  # noqa: B008
        None, help="Bump level or version to check the plan against"
    ),
    package: list[str] = typer.Option(  # noqa: B008
        [], "--package", "-p", help="Package to check (repeatable)"
    ),
    workspace: bool = typer.Option(  # noqa: B008
        False, "--workspace", "--all", help="Check every workspace member"
    ),
    exclude: list[str] = typer.Option(  # noqa: B008
        [], "--exclude", help="Package to leave out (repeatable)"
    ),
    manifest_path: Path | None = typer.Option(  # noqa: B008
        None, "--manifest-path", help="Path to Cargo.toml"
    ),
    config: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help="Extra configuration file (TOML or YAML)"
    ),
    isolated: bool = typer.Option(  # noqa: B008
        False, "--isolated", help="Ignore implicit configuration files"
    ),
    verbose: int = typer.Option(  # noqa: B008
        0, "--verbose", "-v", count=True, help="More output (repeatable)"
    ),
) -> None:
    """Check release preconditions without making changes.

    Runs every gate:
    - Git state (clean tree, free tags, allowed branch, upstream)
    - Versions (no downgrades)
    - Registry (no double publish, rate limits)
    """
    configure_logging(verbose)
    try:
        settings = load_environment()
        ws, ws_config, packages = load_release(manifest_path, config, isolated, None)
        workflow = ReleaseWorkflow(
            workspace=ws,
            config=ws_config,
            packages=packages,
            selection=Selection(tuple(package), workspace, tuple(exclude)),
            target=TargetVersion.parse(level) if level else None,
            index=CratesIndex(settings.index_url),
            settings=settings,
        )
        workflow.resolve()

        context = GateContext(
            workspace_root=ws.root,
            config=ws_config,
            packages=workflow.selected,
            index=workflow.index,
            dry_run=True,
        )
        if verbose:
            registered = GateRegistry.list_registered()
            console.print(f"[dim]Registered gates: {', '.join(registered)}[/dim]\n")

        all_passed = display_gate_results(GateRegistry.run_all(context))
    except ReleaseExit as e:
        raise typer.Exit(code=e.code) from None
    except ReleaseError as e:
        report_error(e)
        raise typer.Exit(code=e.exit_code) from None

    if all_passed:
        console.print("\n[green]All checks passed![/green]")
    else:
        console.print("\n[red]Some checks failed.[/red]")
        raise typer.Exit(code=EXIT_FAILURE)


@app.command()
def replace(
    level: str | None = typer.Argument(  # noqa: B008
        None, help="Bump level or version to render replacements for"
    ),
    package: list[str] = typer.Option(  # noqa: B008
        [], "--package", "-p", help="Package to process (repeatable)"
    ),
    workspace: bool = typer.Option(  # noqa: B008
        False, "--workspace", "--all", help="Process every workspace member"
    ),
    exclude: list[str] = typer.Option(  # noqa: B008
        [], "--exclude", help="Package to leave out (repeatable)"
    ),
    execute: bool = typer.Option(  # noqa: B008
        False, "--execute", "-x", help="Write the files instead of previewing"
    ),
    manifest_path: Path | None = typer.Option(  # noqa: B008
        None, "--manifest-path", help="Path to Cargo.toml"
    ),
    config: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help="Extra configuration file (TOML or YAML)"
    ),
    isolated: bool = typer.Option(  # noqa: B008
        False, "--isolated", help="Ignore implicit configuration files"
    ),
    verbose: int = typer.Option(  # noqa: B008
        0, "--verbose", "-v", count=True, help="More output (repeatable)"
    ),
) -> None:
    """Preview (or apply with --execute) the pre-release replacements."""
    configure_logging(max(verbose, 1))
    try:
        settings = load_environment()
        ws, ws_config, packages = load_release(manifest_path, config, isolated, None)
        workflow = ReleaseWorkflow(
            workspace=ws,
            config=ws_config,
            packages=packages,
            selection=Selection(tuple(package), workspace, tuple(exclude)),
            target=TargetVersion.parse(level) if level else None,
            index=CratesIndex(settings.index_url),
            settings=settings,
        )
        workflow.resolve()
        for pkg in workflow.selected:
            do_file_replacements(
                pkg.config.pre_release_replacements,
                pkg.template(tag_name=pkg.planned_tag),
                pkg.package_root,
                prerelease=pkg.version.is_prerelease,
                noisy=True,
                dry_run=not execute,
            )
    except ReleaseExit as e:
        raise typer.Exit(code=e.code) from None
    except ReleaseError as e:
        report_error(e)
        raise typer.Exit(code=e.exit_code) from None


@app.command(name="config")
def show_config(
    manifest_path: Path | None = typer.Option(  # noqa: B008
        None, "--manifest-path", help="Path to Cargo.toml"
    ),
    config: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help="Extra configuration file (TOML or YAML)"
    ),
    isolated: bool = typer.Option(  # noqa: B008
        False, "--isolated", help="Ignore implicit configuration files"
    ),
) -> None:
    """Print the effective workspace configuration as TOML."""
    configure_logging(0)
    try:
        ws = load_workspace(manifest_path)
        ws_config = load_workspace_config(ws.root, custom_config=config, isolated=isolated)
    except ReleaseError as e:
        report_error(e)
        raise typer.Exit(code=e.exit_code) from None

    console.print(
        tomlkit.dumps(ws_config.to_toml_dict()), markup=False, highlight=False, soft_wrap=True
    )


if __name__ == "__main__":
    app()
