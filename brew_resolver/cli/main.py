"""brew-resolver CLI using Typer."""

import logging
import os
from pathlib import Path

import typer
from dotenv import load_dotenv

from brew_resolver import __version__
from brew_resolver.cli.enrich import enrich_app

# Load .env file from current directory or project root
_env_paths = [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent / ".env",
]
for _env_path in _env_paths:
    if _env_path.exists():
        load_dotenv(_env_path)
        break

app = typer.Typer(
    name="brew-resolver",
    help="brew-resolver - resolve beer labels to canonical brewery and beer records",
    add_completion=False,
)
app.add_typer(enrich_app, name="enrich")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.command()
def init_db() -> None:
    """Initialize the database (create tables)."""
    from brew_resolver.db.engine import init_db as db_init

    typer.echo("Initializing database...")
    db_init()
    typer.echo("Database initialized successfully!")


@app.command()
def version() -> None:
    """Show the brew-resolver version."""
    typer.echo(f"brew-resolver v{__version__}")


@app.command()
def check_config() -> None:
    """Check the current configuration status."""
    from brew_resolver.db.engine import get_database_url
    from brew_resolver.ingestion.config import get_default_config
    from brew_resolver.services.ai.client import API_KEY_ENV_VARS

    typer.echo("brew-resolver Configuration")
    typer.echo("=" * 40)

    env_file = next((p for p in _env_paths if p.exists()), None)
    typer.echo(f"  .env file: {env_file or 'Not found'}")

    config = get_default_config()
    typer.echo(f"  Pipeline config: {config.config_path or 'built-in defaults'}")

    configured = [
        provider
        for provider, names in API_KEY_ENV_VARS.items()
        if any(os.environ.get(name) for name in names)
    ]
    if configured:
        typer.echo(f"  AI providers with keys: {', '.join(configured)}")
    else:
        typer.echo("  AI providers: Not configured (grounded search disabled)")

    typer.echo(f"  Database: {get_database_url()}")
    typer.echo(
        f"  Redis: {os.environ.get('REDIS_HOST', 'localhost')}:"
        f"{os.environ.get('REDIS_PORT', '6379')}/{os.environ.get('REDIS_DB', '0')}"
    )


if __name__ == "__main__":
    app()
