"""
Command Line Interface for projects-board.
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..core.board import Board, Credentials, SessionProvider
from ..core.view import BoardView
from ..errors import BoardError
from ..logging_config import configure_logging


app = typer.Typer(help="Projects Board - a kanban dashboard over GitHub Projects")
console = Console()


def _board(token: Optional[str], user: Optional[str]) -> Board:
    settings = get_settings()
    configure_logging(settings)
    token = token or settings.github_token
    user = user or settings.github_user
    if not token or not user:
        console.print("❌ A GitHub token and user are required (GITHUB_TOKEN, GITHUB_USER)")
        raise typer.Exit(code=2)
    return Board.from_settings(
        SessionProvider(Credentials(token=token, user_id=user)), settings
    )


def _render(view: BoardView) -> None:
    for column in view.columns:
        table = Table(
            title=f"{column.title} ({len(column.projects)})",
            caption=f"sorted by {column.sort_field.value} {column.sort_direction.value}",
        )
        table.add_column("#", justify="right", style="cyan")
        table.add_column("Title", style="bold")
        table.add_column("Items", justify="right")
        table.add_column("Labels")
        for card in column.projects:
            labels = ", ".join(l.title for l in card.labels)
            table.add_row(str(card.number), card.title, str(card.items), labels)
        console.print(table)


async def _run(board: Board, action) -> None:
    try:
        await board.load()
        await action(board)
    finally:
        await board.close()


@app.command()
def sync(
    token: Optional[str] = typer.Option(None, help="GitHub token"),
    user: Optional[str] = typer.Option(None, help="Board owner id"),
):
    """Reconcile GitHub projects into the board and print a summary."""
    board = _board(token, user)

    async def report(board: Board) -> None:
        result = board.last_result
        console.print(
            Panel.fit(
                f"created: {len(result.created)}  deleted: {len(result.deleted)}  "
                f"reassigned: {len(result.reassigned)}  projects: {len(result.projects)}",
                title="Sync complete",
                style="bold green",
            )
        )

    try:
        asyncio.run(_run(board, report))
    except BoardError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)


@app.command()
def show(
    query: str = typer.Option("", help="Filter query, e.g. 'label:bug items:>3'"),
    token: Optional[str] = typer.Option(None, help="GitHub token"),
    user: Optional[str] = typer.Option(None, help="Board owner id"),
):
    """Show the board."""
    board = _board(token, user)

    async def render(board: Board) -> None:
        _render(board.view(query))

    try:
        asyncio.run(_run(board, render))
    except BoardError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)


@app.command()
def move(
    project_id: str = typer.Argument(..., help="GitHub project id"),
    column: str = typer.Argument(..., help="Target column title"),
    token: Optional[str] = typer.Option(None, help="GitHub token"),
    user: Optional[str] = typer.Option(None, help="Board owner id"),
):
    """Move a project to the column with the given title."""
    board = _board(token, user)

    async def do_move(board: Board) -> None:
        target = next((c for c in board.cache.get_columns() if c.title == column), None)
        if target is None:
            console.print(f"❌ No column titled {column!r}")
            raise typer.Exit(code=1)
        await board.orchestrator.move_project(project_id, target.id)
        console.print(f"✅ Moved {project_id} to {column}")

    try:
        asyncio.run(_run(board, do_move))
    except BoardError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
