"""User management CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import select

from careerforge.config import settings
from careerforge.database import get_session_context
from careerforge.models import User, UserRole
from careerforge.services import users as user_store
from careerforge.services.auth import create_verification_token
from careerforge.services.verification import verify_user

console = Console()
app = typer.Typer(help="User management commands")


async def _get_user(session, email: str) -> User:
    user = await user_store.get_user_by_email(session, email)
    if not user:
        console.print(f"[red]Error:[/red] User {email} not found")
        raise typer.Exit(1)
    return user


@app.command("list")
def list_users():
    """List all users."""

    async def _list():
        async with get_session_context() as session:
            stmt = select(User).order_by(User.email)
            result = await session.execute(stmt)
            users = result.scalars().all()

            table = Table(title="Users")
            table.add_column("ID", style="cyan")
            table.add_column("Email", style="green")
            table.add_column("Name")
            table.add_column("Role", style="magenta")
            table.add_column("Verified")
            table.add_column("Created", style="dim")

            for user in users:
                verified_str = "[green]Yes[/green]" if user.verified else "No"
                created = user.created_at.strftime("%Y-%m-%d") if user.created_at else "-"
                table.add_row(user.id, user.email, user.name, user.role.value, verified_str, created)

            console.print(table)

    asyncio.run(_list())


@app.command("create")
def create_user(
    email: str = typer.Argument(..., help="User email"),
    name: str = typer.Option(..., "--name", "-n", help="Display name"),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, confirmation_prompt=True
    ),
    admin: bool = typer.Option(False, "--admin", help="Make user an admin"),
):
    """Create a new (unverified) user."""

    async def _create():
        async with get_session_context() as session:
            try:
                user = await user_store.create_user(session, name, email, password)
            except user_store.EmailAlreadyRegistered:
                console.print(f"[red]Error:[/red] User {email} already exists")
                raise typer.Exit(1) from None

            if admin:
                user.role = UserRole.ADMIN
            await session.commit()
            console.print(f"[green]Created user:[/green] {user.email} ({user.id}, role={user.role.value})")

    asyncio.run(_create())


@app.command("verify-url")
def verify_url(email: str = typer.Argument(..., help="User email")):
    """Generate an email verification link for a user."""

    async def _generate():
        async with get_session_context() as session:
            user = await _get_user(session, email)
            if user.verified:
                console.print(f"[yellow]Warning:[/yellow] User {email} is already verified")

            token = create_verification_token(user)
            console.print(f"[green]Verification URL:[/green] {settings.app_url}/verify/{token}")
            console.print(
                f"[dim]Expires in {settings.verification_token_expiration_minutes} minutes[/dim]"
            )

    asyncio.run(_generate())


@app.command("verify")
def verify(email: str = typer.Argument(..., help="User email")):
    """Mark a user verified through the same path a verification link takes."""

    async def _verify():
        async with get_session_context() as session:
            user = await _get_user(session, email)
            result = await verify_user(session, create_verification_token(user), client_ip="cli")

            if result.ok:
                console.print(f"[green]Verified:[/green] {email}")
            else:
                console.print(f"[yellow]Not verified:[/yellow] {email} ({result.error.value})")
                raise typer.Exit(1)

    asyncio.run(_verify())
