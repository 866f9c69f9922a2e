"""boardmd CLI: all commands."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from rich import print as rprint
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

import boardmd.settings as settings_module
from boardmd.actions import Action
from boardmd.dates import DateFormat
from boardmd.errors import BoardmdError, ExecutionError
from boardmd.executor import order_actions
from boardmd.models import ExtendedEditMarker
from boardmd.providers.base import BoardProvider
from boardmd.providers.trello import TrelloProvider
from boardmd.reconcile import DiffResult
from boardmd.session import BoardSession
from boardmd.settings import (
    BoardmdSettings,
    get_settings,
    resolve_profile,
    save_profile,
    save_profile_value,
    set_default_profile,
)

app = typer.Typer(help="boardmd: edit Trello boards as markdown", no_args_is_help=True)

ProfileOpt = Annotated[
    str | None,
    typer.Option("--profile", "-p", help="Profile name from ~/.config/boardmd/config.toml"),
]
DryRunOpt = Annotated[bool, typer.Option("--dry-run", help="Show the planned changes without applying them")]
YesOpt = Annotated[bool, typer.Option("--yes", "-y", help="Apply without asking for confirmation")]

TRELLO_KEY_URL = "https://trello.com/power-ups/admin"
TRELLO_TOKEN_URL = "https://trello.com/1/authorize?expiration=never&scope=read,write&response_type=token&key={key}"


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log every API request")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_provider(settings: BoardmdSettings) -> BoardProvider:
    return TrelloProvider(settings)


def _require_board(settings: BoardmdSettings) -> str:
    if not settings.board_id:
        rprint("[red]No current board set. Run 'boardmd use <board>' or 'boardmd init'.[/red]")
        raise typer.Exit(1)
    return settings.board_id


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Turn boardmd errors into a red message and exit status 1."""
    try:
        yield
    except ExecutionError as exc:
        rprint(f"[red]Error:[/red] {escape(str(exc))}")
        if exc.applied:
            rprint("Already applied:")
            for action in exc.applied:
                rprint(f"  [green]✓[/green] {escape(action.describe())}")
        rprint("[yellow]The board may be partially updated. Re-render it before trying again.[/yellow]")
        raise typer.Exit(1)
    except BoardmdError as exc:
        rprint(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1)


def _echo_applied(description: str) -> None:
    rprint(f"[green]✓[/green] {escape(description)}")


def _plan_table(actions: list[Action], title: str) -> Table:
    table = Table(title=title)
    table.add_column("#", style="dim")
    table.add_column("Phase", style="cyan")
    table.add_column("Change")
    for number, action in enumerate(order_actions(actions), start=1):
        table.add_row(str(number), action.phase.name.lower(), escape(action.describe()))
    return table


def _confirm_or_stop(count: int, yes: bool) -> bool:
    if yes:
        return True
    if typer.confirm(f"Apply {count} change(s)?", default=True):
        return True
    rprint("[yellow]Nothing applied.[/yellow]")
    return False


def _extended_pass(
    session: BoardSession, markers: list[ExtendedEditMarker], editor: str | None, dry_run: bool, yes: bool
) -> None:
    names = ", ".join(f"{m.object_type.value} '{m.object_name}'" for m in markers)
    rprint(f"\nFound {len(markers)} item(s) marked for detailed editing: {escape(names)}")
    if dry_run:
        return

    original = session.extended_text(markers)
    edited = typer.edit(original, editor=editor, extension=".txt", require_save=False)
    if edited is None or edited == original:
        rprint("No detailed changes made.")
        return

    updates = session.reconcile_extended(original, edited)
    if not updates:
        rprint("No detailed changes detected.")
        return
    rprint(_plan_table(list(updates), "Detailed changes"))
    if _confirm_or_stop(len(updates), yes):
        session.apply_extended(updates, echo=_echo_applied)
        rprint("[green]✓[/green] Detailed changes applied")


def _reconcile_and_apply(
    session: BoardSession, edited: str, settings: BoardmdSettings, dry_run: bool, yes: bool
) -> None:
    result: DiffResult = session.reconcile(edited)
    if result.is_empty:
        rprint("No logical changes detected.")
        return

    if result.actions:
        rprint(_plan_table(result.actions, "Planned changes"))
        if dry_run:
            rprint("[dim](dry run, nothing applied)[/dim]")
        elif _confirm_or_stop(len(result.actions), yes):
            session.apply(result, echo=_echo_applied)
            rprint(f"[green]✓[/green] Applied {len(result.actions)} change(s)")
        else:
            return

    if result.extended:
        _extended_pass(session, result.extended, settings.editor, dry_run, yes)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("boards")
def boards_cmd(profile: ProfileOpt = None) -> None:
    """List my open boards."""
    settings = get_settings(profile)
    with _handle_errors():
        boards = get_provider(settings).list_boards()

    table = Table(title="Boards")
    table.add_column("", style="green")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("URL", style="dim")

    for board in boards:
        current = "*" if board.id == settings.board_id else ""
        table.add_row(current, board.id, escape(board.name), board.url)

    rprint(table)


@app.command("use")
def use_cmd(
    board: Annotated[str, typer.Argument(help="Board ID or name")],
    profile: ProfileOpt = None,
) -> None:
    """Select the current board for the active profile."""
    settings = get_settings(profile)
    with _handle_errors():
        boards = get_provider(settings).list_boards()

    selected = next((b for b in boards if b.id == board), None) or next(
        (b for b in boards if b.name.casefold() == board.casefold()), None
    )
    if selected is None:
        rprint(f"[red]No open board matches '{escape(board)}'. Run 'boardmd boards' to list them.[/red]")
        raise typer.Exit(1)

    active = resolve_profile(profile) or "default"
    save_profile_value(active, "board_id", selected.id)
    rprint(f'[green]✓[/green] Current board set to "{escape(selected.name)}" in profile "{active}"')


@app.command("render")
def render_cmd(
    profile: ProfileOpt = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write to file instead of stdout"),
    ] = None,
) -> None:
    """Render the current board as markdown."""
    settings = get_settings(profile)
    board_id = _require_board(settings)
    with _handle_errors():
        session = BoardSession.open(get_provider(settings), board_id, settings.date_format)

    if output:
        output.write_text(session.baseline)
        rprint(f"[green]✓[/green] Wrote board to {output}")
    else:
        # plain echo: "[ ]" checkboxes would be eaten as rich markup
        typer.echo(session.baseline)


@app.command("board")
def board_cmd(profile: ProfileOpt = None, dry_run: DryRunOpt = False, yes: YesOpt = False) -> None:
    """Edit the current board in $EDITOR and apply the changes."""
    settings = get_settings(profile)
    board_id = _require_board(settings)
    with _handle_errors():
        session = BoardSession.open(get_provider(settings), board_id, settings.date_format)
        edited = typer.edit(session.baseline, editor=settings.editor, extension=".md", require_save=False)
        if edited is None or edited == session.baseline:
            rprint("No changes made.")
            return
        _reconcile_and_apply(session, edited, settings, dry_run, yes)


@app.command("push")
def push_cmd(
    file: Annotated[Path, typer.Argument(help="Markdown file rendered earlier with 'boardmd render'")],
    profile: ProfileOpt = None,
    dry_run: DryRunOpt = False,
    yes: YesOpt = False,
) -> None:
    """Apply an edited markdown file to the current board."""
    if not file.exists():
        rprint(f"[red]File not found: {file}[/red]")
        raise typer.Exit(1)

    settings = get_settings(profile)
    board_id = _require_board(settings)
    with _handle_errors():
        session = BoardSession.open(get_provider(settings), board_id, settings.date_format)
        _reconcile_and_apply(session, file.read_text(), settings, dry_run, yes)


@app.command("open")
def open_cmd(profile: ProfileOpt = None) -> None:
    """Open the current board in the browser."""
    settings = get_settings(profile, require_credentials=False)
    url = f"https://trello.com/b/{_require_board(settings)}"
    typer.launch(url)
    rprint(f"Opening board in browser: {url}")


@app.command("set-default")
def set_default(
    profile: Annotated[str, typer.Argument(help="Profile name to set as default")],
) -> None:
    """Set the default profile in ~/.config/boardmd/config.toml."""
    set_default_profile(profile)
    rprint(f'[green]✓[/green] Default profile set to "{profile}" in {settings_module.CONFIG_PATH}')


@app.command("config-show")
def config_show(profile: ProfileOpt = None) -> None:
    """Show resolved configuration (masks credentials)."""
    settings = get_settings(profile, require_credentials=False)

    def mask(val: str | None) -> str:
        if val is None:
            return "[dim](not set)[/dim]"
        if len(val) <= 5:
            return "***"
        return f"...{val[-5:]}"

    table = Table(title="boardmd Configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("profile", resolve_profile(profile) or "[dim](not set)[/dim]")
    table.add_row("default_profile", settings.default_profile or "[dim](not set)[/dim]")
    table.add_row("trello_api_key", mask(settings.trello_api_key.get_secret_value() if settings.trello_api_key else None))
    table.add_row("trello_token", mask(settings.trello_token.get_secret_value() if settings.trello_token else None))
    table.add_row("board_id", settings.board_id or "[dim](not set)[/dim]")
    table.add_row("date_format", f"{settings.date_format.value} ({settings.date_format.display})")
    table.add_row("editor", settings.editor or "[dim]($VISUAL / $EDITOR)[/dim]")

    rprint(table)


@app.command("init")
def init_cmd() -> None:
    """Interactive first-time setup wizard."""
    rprint("[bold]boardmd Setup Wizard[/bold]")
    rprint("")

    # Step 1: credentials
    rprint(f"Get your API key at: {TRELLO_KEY_URL}")
    key = typer.prompt("Paste API key").strip()
    rprint(f"Authorise boardmd at: {TRELLO_TOKEN_URL.format(key=key)}")
    token = typer.prompt("Paste token", hide_input=True).strip()
    if not key or not token:
        rprint("[red]API key and token are both required.[/red]")
        raise typer.Exit(1)

    profile_config: dict = {"trello_api_key": key, "trello_token": token}

    # Step 2: verify by listing boards, then pick one
    try:
        boards = TrelloProvider(BoardmdSettings(trello_api_key=key, trello_token=token)).list_boards()
    except BoardmdError as exc:
        rprint(f"[red]Could not list boards: {escape(str(exc))}[/red]")
        raise typer.Exit(1)
    rprint(f"[green]✓[/green] Connected. Found {len(boards)} open board(s).")

    for number, board in enumerate(boards, start=1):
        rprint(f"  {number}. {escape(board.name)}")
    if boards:
        choice = typer.prompt("Current board number (0 to skip)", type=int, default=1)
        if 1 <= choice <= len(boards):
            profile_config["board_id"] = boards[choice - 1].id

    # Step 3: date format
    for fmt in DateFormat:
        rprint(f"  {fmt.value}: {fmt.display}")
    date_format = typer.prompt("Date format", default=DateFormat.ISO.value).strip().lower()
    if date_format not in {fmt.value for fmt in DateFormat}:
        rprint("[red]Invalid date format. Choose iso, us or eu.[/red]")
        raise typer.Exit(1)
    profile_config["date_format"] = date_format

    # Step 4: profile name
    profile_name = typer.prompt("Profile name (e.g. work, personal)", default="default").strip()
    if not profile_name:
        rprint("[red]Profile name cannot be empty.[/red]")
        raise typer.Exit(1)

    set_as_default = typer.confirm(f"Set '{profile_name}' as default profile?", default=True)

    # Step 5: write config (round-trip preserves any existing comments)
    save_profile(profile_name, profile_config, make_default=set_as_default)
    rprint(f"[green]✓[/green] Profile '{profile_name}' written to {settings_module.CONFIG_PATH}")

    rprint("")
    config_show(profile=profile_name)
