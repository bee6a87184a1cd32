"""Account commands: register, login, logout, reset-password."""
from __future__ import annotations

from typing import Optional, Union

import click

from ...auth import AuthUser
from ...config import clear_session, load_session, save_session
from ...exceptions import AuthenticationError
from ...onboarding import LoginFlow, OnboardingStep, RegistrationFlow
from ..context import console, make_authenticator, make_client, run, session_path

Flow = Union[LoginFlow, RegistrationFlow]


async def _converse(flow: Flow) -> None:
    """Print each new question and feed typed answers until the flow ends."""
    shown = 0
    while not flow.is_finished:
        for message in flow.transcript[shown:]:
            if message.is_question:
                console.print(f"[bold blue]{message.text}[/bold blue]")
        shown = len(flow.transcript)
        answer = click.prompt(
            ">",
            default="",
            show_default=False,
            prompt_suffix=" ",
            hide_input=flow.expects_secret,
        )
        await flow.handle(answer)


async def _register(ctx: click.Context) -> RegistrationFlow:
    authenticator = make_authenticator(ctx)
    client = make_client(ctx)
    try:
        flow = RegistrationFlow(authenticator, client)
        await _converse(flow)
        return flow
    finally:
        await client.close()
        await authenticator.close()


async def _login(ctx: click.Context) -> LoginFlow:
    authenticator = make_authenticator(ctx)
    try:
        flow = LoginFlow(authenticator)
        await _converse(flow)
        return flow
    finally:
        await authenticator.close()


def _remember(ctx: click.Context, user: AuthUser) -> None:
    save_session({"email": user.email, "uid": user.uid}, session_path(ctx))


@click.command()
@click.pass_context
def register(ctx):
    """Create an account and register it for cards."""
    console.print("\n[bold blue]WalletCards Registration[/bold blue]\n")
    flow = run(_register(ctx))
    if flow.message:
        console.print(f"[green]{flow.message}[/green]")
    _remember(ctx, flow.user)
    console.print(f"[green]✓ Registered and signed in as {flow.user.email}[/green]\n")


@click.command()
@click.pass_context
def login(ctx):
    """Sign in to an existing account."""
    console.print("\n[bold blue]WalletCards Login[/bold blue]\n")
    flow = run(_login(ctx))
    if flow.step is OnboardingStep.REGISTER:
        console.print("[cyan]No problem, let's get you registered.[/cyan]\n")
        ctx.invoke(register)
        return
    _remember(ctx, flow.user)
    console.print(f"\n[green]✓ Signed in as {flow.user.email}[/green]\n")


@click.command()
@click.pass_context
def logout(ctx):
    """Forget the signed-in user."""
    clear_session(session_path(ctx))
    console.print("[green]✓ Logged out successfully[/green]")


@click.command("reset-password")
@click.option("--email", help="Account email (defaults to the signed-in user)")
@click.pass_context
def reset_password(ctx, email: Optional[str]):
    """Email a password reset link."""
    email = email or load_session(session_path(ctx)).get("email")
    if not email:
        email = click.prompt("Email address")

    async def _send() -> None:
        authenticator = make_authenticator(ctx)
        try:
            await authenticator.send_password_reset(email)
        finally:
            await authenticator.close()

    try:
        run(_send())
    except AuthenticationError as exc:
        raise click.ClickException(exc.message) from exc
    console.print(f"[green]✓ Password reset email sent to {email}[/green]")
