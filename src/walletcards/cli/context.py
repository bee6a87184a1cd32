"""Shared helpers for CLI commands."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Coroutine, Optional, TypeVar

import click
from rich.console import Console

from ..auth import Authenticator, FirebaseAuthenticator
from ..client import AsyncWalletCardsClient, create_client
from ..config import WalletCardsSettings, load_session
from ..exceptions import ConfigurationError

console = Console()

T = TypeVar("T")


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run one command's coroutine on a fresh event loop."""
    return asyncio.run(coro)


def get_settings_obj(ctx: click.Context) -> WalletCardsSettings:
    return ctx.obj["settings"]


def session_path(ctx: click.Context) -> Optional[Path]:
    return ctx.obj.get("session_path")


def make_client(ctx: click.Context) -> AsyncWalletCardsClient:
    """Build the gateway client (tests inject ``client_factory``)."""
    factory = ctx.obj.get("client_factory")
    if factory is not None:
        return factory()
    try:
        return create_client(get_settings_obj(ctx))
    except ConfigurationError as exc:
        raise click.ClickException(exc.message) from exc


def make_authenticator(ctx: click.Context) -> Authenticator:
    """Build the identity-provider adapter (tests inject ``auth_factory``)."""
    factory = ctx.obj.get("auth_factory")
    if factory is not None:
        return factory()
    api_key = get_settings_obj(ctx).firebase_api_key.get_secret_value()
    if not api_key:
        raise click.ClickException("WALLETCARDS_FIREBASE_API_KEY must be set")
    return FirebaseAuthenticator(api_key)


def require_email(ctx: click.Context) -> str:
    """Email of the signed-in user, or exit with a hint."""
    email = load_session(session_path(ctx)).get("email")
    if not email:
        raise click.ClickException("Not signed in. Run 'walletcards login' first.")
    return email
