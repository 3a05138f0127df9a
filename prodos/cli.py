"""
prodos command line.

Commands:
    prodos init PATH           set up a workspace folder and make it current
    prodos status              show the current workspace and database
    prodos sync                fill in any missing product folders and markdown files
    prodos migrate PATH        copy the workspace to a new folder and switch to it
    prodos show ENTITY_ID      show an entity's markdown file
"""

from pathlib import Path
from typing import Optional

import click
from rich.markdown import Markdown
from rich.table import Table

from prodos.config.logger import get_console, reset_logging
from prodos.config.settings import global_settings, update_global_settings
from prodos.config.setup import setup
from prodos.config.text_styles import EMOJI_FAILURE, EMOJI_SKIP, EMOJI_SUCCESS, EMOJI_WARN
from prodos.errors import SelfExplanatoryError
from prodos.product_os import ProductOS
from prodos.util.format_utils import fmt_lines, fmt_path
from prodos.version import get_version
from prodos.workspace.manager import WorkspaceManager


def _product_os(ctx: click.Context) -> ProductOS:
    """
    Start up against the saved workspace, or the app data directory if there is none.
    """
    product_os: ProductOS = ctx.obj
    if not product_os.manager.has_database:
        product_os.start()
        workspace_path = product_os.workspace_path()
        if workspace_path:
            reset_logging(workspace_path)
    return product_os


@click.group()
@click.version_option(version=get_version())
@click.option(
    "--app-data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for the default database and workspace config.",
)
@click.pass_context
def cli(ctx: click.Context, app_data_dir: Optional[Path]) -> None:
    """Product OS workspace tools."""
    if app_data_dir:
        with update_global_settings() as settings:
            settings.app_data_dir = app_data_dir.expanduser()
    setup()
    ctx.obj = ProductOS(WorkspaceManager(app_data_dir or global_settings().app_data_dir))
    ctx.call_on_close(ctx.obj.manager.close_database)


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.pass_obj
def init(product_os: ProductOS, path: Path) -> None:
    """Set up PATH as the workspace and sync it."""
    try:
        dirs = product_os.initialize_workspace(path)
        reset_logging(dirs.base_dir)
        summary = product_os.sync()
    except SelfExplanatoryError as e:
        raise click.ClickException(str(e)) from e

    console = get_console()
    console.print(
        f"{EMOJI_SUCCESS} Workspace ready: {fmt_path(dirs.base_dir)}", style="prodos.success"
    )
    console.print(str(summary))


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the current workspace."""
    product_os = _product_os(ctx)
    manager = product_os.manager

    table = Table(show_header=False, box=None)
    table.add_column(style="prodos.key")
    table.add_column()
    workspace_path = product_os.workspace_path()
    table.add_row("Workspace", fmt_path(workspace_path) if workspace_path else "(none)")
    table.add_row("Configured", "yes" if product_os.is_workspace_configured() else "no")
    table.add_row("Database", fmt_path(manager.database.path))
    table.add_row("Products", str(len(product_os.list_products())))
    get_console().print(table)


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Create any missing product folders and markdown files."""
    product_os = _product_os(ctx)
    summary = product_os.sync()

    console = get_console()
    if summary.errors:
        console.print(f"{EMOJI_WARN} {summary}", style="prodos.warning")
        console.print(fmt_lines(summary.error_messages), style="prodos.failure")
        ctx.exit(1)
    elif summary.is_up_to_date:
        console.print(f"{EMOJI_SKIP} All files up to date: {summary}", style="prodos.skip")
    else:
        console.print(f"{EMOJI_SUCCESS} {summary}", style="prodos.success")


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def migrate(ctx: click.Context, path: Path) -> None:
    """Copy the workspace to PATH and switch to it. The old folder is kept."""
    product_os = _product_os(ctx)
    result = product_os.migrate_workspace(path)
    if not result.success:
        raise click.ClickException(f"{EMOJI_FAILURE} Migration failed: {result.error}")

    reset_logging(result.new_path)
    console = get_console()
    console.print(
        f"{EMOJI_SUCCESS} Workspace moved to {fmt_path(result.new_path)}",
        style="prodos.success",
    )
    if result.backup_path:
        console.print(
            f"Previous workspace kept at {fmt_path(result.backup_path)}", style="prodos.hint"
        )


@cli.command()
@click.argument("entity_id")
@click.option("--raw", is_flag=True, help="Print the file as is.")
@click.pass_context
def show(ctx: click.Context, entity_id: str, raw: bool) -> None:
    """Show the markdown file for ENTITY_ID."""
    product_os = _product_os(ctx)
    try:
        doc = product_os.read_entity_markdown(entity_id)
    except (SelfExplanatoryError, FileNotFoundError) as e:
        raise click.ClickException(str(e)) from e

    console = get_console()
    if raw:
        click.echo(doc.path.read_text(encoding="utf-8"), nl=False)
        return

    console.print(fmt_path(doc.path), style="prodos.path")
    table = Table(show_header=False, box=None)
    table.add_column(style="prodos.key")
    table.add_column()
    for key, value in doc.metadata.items():
        table.add_row(str(key), str(value))
    console.print(table)
    console.print(Markdown(doc.body))


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
