"""CLI commands using Typer."""

import typer

from careerforge.cli.db import app as db_app
from careerforge.cli.users import app as users_app

app = typer.Typer(name="careerforge", help="CareerForge CLI")

# Register sub-apps
app.add_typer(db_app, name="db")
app.add_typer(users_app, name="users")


@app.callback()
def main():
    """Configure logging for every command."""
    from careerforge.logging import setup_logging

    setup_logging()


@app.command()
def version():
    """Show version information."""
    from careerforge import __version__

    typer.echo(f"CareerForge v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
):
    """Run the API server."""
    import uvicorn

    from careerforge.logging import get_uvicorn_log_config

    uvicorn.run(
        "careerforge.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=get_uvicorn_log_config(),
    )


if __name__ == "__main__":
    app()
