"""Virtual card commands."""
from __future__ import annotations

import click
from rich.table import Table

from ...application import ApplicationState, ApplicationWorkflow, PaymentInstruction
from ...card_control import CardControl, StatusSwitch
from ...exceptions import GENERIC_ERROR_MESSAGE, ValidationError
from ...ledger import CardLedger
from ...models.card import CardDetail, CardStatus
from ...three_ds import ChallengeKind, ThreeDSChallengeHandler
from ..context import console, make_client, require_email, run


def _status_markup(status: CardStatus) -> str:
    if status is CardStatus.ACTIVE:
        return "[green]active[/green]"
    return "[red]blocked[/red]"


def _print_payment(payment: PaymentInstruction) -> None:
    console.print(f"\n[bold]{payment.label}[/bold]")
    console.print(f"  Amount due: [green]{payment.amount_due}[/green] USDC")
    console.print(f"  Deposit address: [cyan]{payment.deposit_address}[/cyan]")
    console.print("[dim]Your card is issued once the deposit is confirmed.[/dim]")


async def _detail(ctx: click.Context, email: str, card_id: str) -> CardDetail:
    client = make_client(ctx)
    try:
        detail = await CardLedger(client).refresh_detail(email, card_id)
    finally:
        await client.close()
    if detail is None:
        raise click.ClickException(GENERIC_ERROR_MESSAGE)
    return detail


@click.group()
@click.pass_context
def cards(ctx):
    """Virtual card operations."""
    pass


@cards.command("list")
@click.pass_context
def list_cards(ctx):
    """List your cards, including ones awaiting payment."""
    email = require_email(ctx)

    async def _list():
        client = make_client(ctx)
        try:
            return await CardLedger(client).refresh(email)
        finally:
            await client.close()

    summaries = run(_list())
    if summaries is None:
        raise click.ClickException(GENERIC_ERROR_MESSAGE)
    if not summaries:
        console.print("[yellow]No cards yet. Run 'walletcards cards apply' to get one.[/yellow]")
        return

    table = Table(title="Virtual Cards")
    table.add_column("Card ID", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Number", style="dim")
    table.add_column("Brand", style="white")
    table.add_column("Type", style="white")
    table.add_column("State", style="white")

    for card in summaries:
        state = "[yellow]awaiting payment[/yellow]" if card.is_pending else "[green]issued[/green]"
        table.add_row(
            card.card_id or "-",
            card.name_on_card,
            card.masked_number,
            card.brand,
            card.card_type,
            state,
        )

    console.print(table)
    if any(card.is_pending for card in summaries):
        console.print("[dim]Run 'walletcards cards pay' to see how to pay for pending cards.[/dim]")


@cards.command()
@click.argument("card_id")
@click.option("--reveal", is_flag=True, help="Show the full card number and CVV")
@click.option("--yes", is_flag=True, help="Skip the confirmation before revealing")
@click.pass_context
def show(ctx, card_id: str, reveal: bool, yes: bool):
    """Show balance, transactions and deposits for a card."""
    email = require_email(ctx)
    detail = run(_detail(ctx, email, card_id))

    if reveal and not yes:
        reveal = click.confirm("Reveal the card number and CVV on screen?", default=False)

    console.print(f"\n[bold]{detail.name_on_card or 'Card'}[/bold]  {_status_markup(detail.status)}")
    if reveal:
        console.print(f"  Number: [white]{detail.card_number.get_secret_value()}[/white]")
        console.print(f"  CVV: [white]{detail.cvv.get_secret_value()}[/white]")
    else:
        console.print(f"  Number: [dim]{detail.masked_number}[/dim]")
    console.print(f"  Expiry: {detail.expiry}")
    console.print(f"  Balance: [green]{detail.display_balance}[/green]")

    billing = ", ".join(
        part for part in (detail.address1, detail.city, detail.state, detail.country, detail.postal_code)
        if part
    )
    if billing:
        console.print(f"  Billing address: {billing}")

    if detail.transactions:
        table = Table(title="Transactions")
        table.add_column("Date", style="dim")
        table.add_column("Merchant", style="white")
        table.add_column("Status", style="white")
        table.add_column("Amount", justify="right")
        for tx in detail.transactions:
            color = "red" if tx.is_debit else "green"
            table.add_row(
                tx.display_date,
                tx.merchant.name,
                tx.status,
                f"[{color}]{tx.display_amount}[/{color}]",
            )
        console.print(table)
    else:
        console.print("[dim]No transactions yet.[/dim]")

    if detail.deposits:
        table = Table(title="Deposits")
        table.add_column("Date", style="dim")
        table.add_column("Transaction", style="cyan")
        table.add_column("Amount", style="green", justify="right")
        for deposit in detail.deposits:
            table.add_row(deposit.display_date, deposit.transaction_hash, deposit.display_amount)
        console.print(table)


@cards.command()
@click.argument("card_id")
@click.pass_context
def addresses(ctx, card_id: str):
    """Show the deposit addresses for topping up a card."""
    email = require_email(ctx)
    detail = run(_detail(ctx, email, card_id))

    found = detail.deposit_addresses()
    if not found:
        console.print("[yellow]No deposit addresses for this card.[/yellow]")
        return

    table = Table(title="Deposit Addresses")
    table.add_column("Network", style="white")
    table.add_column("Address", style="cyan")
    for label, address in found.items():
        table.add_row(label, address)
    console.print(table)


@cards.command()
@click.pass_context
def apply(ctx):
    """Apply for a new virtual card."""
    email = require_email(ctx)

    async def _apply():
        client = make_client(ctx)
        try:
            workflow = ApplicationWorkflow(client, email)
            previous: dict[str, str] = {}
            while True:
                while (field := workflow.current_field) is not None:
                    last = previous.get(field.name)
                    answer = click.prompt(
                        field.prompt,
                        default=last if last is not None else ("" if field.optional else None),
                        show_default=bool(last),
                    )
                    try:
                        workflow.answer(answer)
                    except ValidationError as exc:
                        console.print(f"[red]{exc.message}[/red]")

                with console.status("Submitting application..."):
                    outcome = await workflow.submit()

                if outcome.state in (ApplicationState.REJECTED, ApplicationState.FAILED):
                    console.print(f"[red]{outcome.message}[/red]")
                    if click.confirm("Submit again?", default=False):
                        # Walk the form again; Enter keeps the last answer.
                        previous = workflow.answers
                        workflow.retry(clear=True)
                        continue
                return outcome
        finally:
            await client.close()

    console.print(f"\n[bold]Apply for a new card[/bold]  ({email})\n")
    outcome = run(_apply())

    if outcome.state is ApplicationState.PENDING_PAYMENT:
        if outcome.message:
            console.print(f"[green]{outcome.message}[/green]")
        _print_payment(outcome.payment)
    elif outcome.state is ApplicationState.ISSUED:
        console.print(f"[green]✓ {outcome.message or 'Card issued'}[/green]")
    else:
        ctx.exit(1)


@cards.command()
@click.pass_context
def pay(ctx):
    """Show how to pay for cards awaiting payment."""
    email = require_email(ctx)

    async def _pending():
        client = make_client(ctx)
        try:
            ledger = CardLedger(client)
            if await ledger.refresh(email) is None:
                return None
            return [ledger.payment_instruction(card) for card in ledger.pending_cards()]
        finally:
            await client.close()

    instructions = run(_pending())
    if instructions is None:
        raise click.ClickException(GENERIC_ERROR_MESSAGE)
    if not instructions:
        console.print("[green]No cards awaiting payment.[/green]")
        return
    for payment in instructions:
        if payment is None:
            console.print("[yellow]A card is awaiting payment but no fee was quoted yet.[/yellow]")
        else:
            _print_payment(payment)


@cards.command()
@click.argument("card_id")
@click.pass_context
def toggle(ctx, card_id: str):
    """Block an active card, or unblock a blocked one."""
    email = require_email(ctx)

    async def _toggle():
        client = make_client(ctx)
        try:
            ledger = CardLedger(client)
            detail = await ledger.refresh_detail(email, card_id)
            if detail is None:
                return None, None
            switch = StatusSwitch(detail.status)
            response = await CardControl(client, ledger).toggle(
                email, card_id, detail.status, switch
            )
            return response, switch
        finally:
            await client.close()

    response, switch = run(_toggle())
    if response is None:
        raise click.ClickException(GENERIC_ERROR_MESSAGE)
    if response.message:
        console.print(response.message)
    console.print(f"Card {card_id} is now {_status_markup(switch.displayed_status)}")


@cards.command("3ds")
@click.argument("card_id")
@click.pass_context
def three_ds(ctx, card_id: str):
    """Check for and answer a 3-D Secure request."""
    email = require_email(ctx)

    async def _check_and_answer():
        client = make_client(ctx)
        try:
            outcome = await ThreeDSChallengeHandler(client).check_challenge(email, card_id)
            if outcome.kind is not ChallengeKind.PENDING:
                return outcome.kind, outcome.message

            session = outcome.session
            challenge = session.challenge
            console.print("\n[bold]3DS Authentication[/bold]")
            console.print(f"  Merchant: {challenge.merchant_name}")
            console.print(f"  Amount: {challenge.merchant_amount} {challenge.merchant_currency}")
            if challenge.masked_pan:
                console.print(f"  Card: [dim]{challenge.masked_pan}[/dim]")

            if click.confirm("Approve this transaction?", default=False):
                return outcome.kind, await session.approve()
            session.reject()
            return outcome.kind, "Transaction rejected"
        finally:
            await client.close()

    kind, message = run(_check_and_answer())
    if kind is ChallengeKind.ERROR:
        raise click.ClickException(message)
    console.print(message)
