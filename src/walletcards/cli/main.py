"""
WalletCards CLI main entry point.

Usage:
    walletcards [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

import click

from ..config import WalletCardsSettings, get_settings, load_session
from ..logging_config import setup_logging
from .commands import auth, cards
from .context import console, session_path


@click.group()
@click.version_option(package_name="walletcards", message="%(prog)s %(version)s")
@click.option("--api-url", envvar="WALLETCARDS_API_BASE_URL", help="Backend base URL")
@click.option("--json-logs", is_flag=True, help="Log JSON lines to stderr")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, api_url: str | None, json_logs: bool, verbose: bool):
    """WalletCards - virtual cards funded with crypto."""
    ctx.ensure_object(dict)

    settings: WalletCardsSettings = ctx.obj.get("settings") or get_settings()
    if api_url:
        settings = settings.model_copy(
            update={"api_base_url": api_url if api_url.endswith("/") else api_url + "/"}
        )
    ctx.obj["settings"] = settings

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=json_logs or settings.log_json,
    )


@cli.command()
@click.pass_context
def status(ctx):
    """Show current configuration and signed-in user."""
    settings: WalletCardsSettings = ctx.obj["settings"]

    console.print("\n[bold blue]WalletCards Status[/bold blue]\n")
    console.print(f"API URL: [cyan]{settings.api_base_url}[/cyan]")

    public_key = settings.public_key.get_secret_value()
    if settings.has_credentials:
        masked = public_key[:8] + "..." + public_key[-4:] if len(public_key) > 12 else "***"
        console.print(f"Platform keys: [green]{masked}[/green]")
    else:
        console.print("Platform keys: [yellow]Not configured[/yellow]")

    email = load_session(session_path(ctx)).get("email")
    if email:
        console.print(f"Signed in as: [green]{email}[/green]")
    else:
        console.print("Signed in as: [yellow]nobody[/yellow] (run 'walletcards login')")
    console.print()


cli.add_command(auth.register)
cli.add_command(auth.login)
cli.add_command(auth.logout)
cli.add_command(auth.reset_password)
cli.add_command(cards.cards)


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
