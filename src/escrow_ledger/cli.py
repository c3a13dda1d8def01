"""CLI entry point for escrow ledger administration."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import click
from stellar_sdk import Keypair

from escrow_ledger.auth.verifier import ShippingAuthorizationVerifier, sign_shipping_authorization
from escrow_ledger.catalog.batch import BatchOperator, parse_catalog_listing
from escrow_ledger.catalog.products import ProductCatalog
from escrow_ledger.clock import SystemClock
from escrow_ledger.config import load_config
from escrow_ledger.encoding import MAX_UINT256, is_valid_account
from escrow_ledger.errors import LedgerError
from escrow_ledger.fees.controller import FeeController
from escrow_ledger.market import bootstrap_ledger, expected_custody
from escrow_ledger.models.records import BalanceKind, TicketStatus
from escrow_ledger.registry.access import require_state
from escrow_ledger.registry.whitelist import WhitelistRegistry
from escrow_ledger.storage.sqlite import SQLiteLedgerStore
from escrow_ledger.units import FEE_DECIMALS, fee_from_percent, format_units, normalize_token


def _pct(fee: int) -> str:
    return f"{format_units(fee, FEE_DECIMALS)}%"


def _require_admin(cfg):
    """Exit with error if no admin account is configured."""
    if not cfg.admin:
        click.echo("Error: No admin account configured.", err=True)
        click.echo("Set ESCROW_LEDGER_ADMIN env var or admin in [ledger].", err=True)
        sys.exit(1)


def _require_signer_secret(cfg):
    """Exit with error if no signer secret is configured."""
    if not cfg.signer_secret:
        click.echo("Error: No signer secret configured.", err=True)
        click.echo("Set ESCROW_LEDGER_SIGNER_SECRET env var or secret in [signer].", err=True)
        sys.exit(1)


def _with_store(cfg, action):
    """Run ``action(store)`` against the configured database."""

    async def _main():
        store = SQLiteLedgerStore(cfg.db_path)
        await store.initialize()
        try:
            return await action(store)
        finally:
            await store.close()

    try:
        return asyncio.run(_main())
    except LedgerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """escrow-ledger - Escrowed marketplace ledger administration."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    if verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, load_config(config_path).log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Setup ──────────────────────────────────────────────


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Initialize the ledger with the configured admin, signer and fee."""
    cfg = load_config(ctx.obj["config_path"])
    _require_admin(cfg)
    try:
        fee = fee_from_percent(cfg.initial_fee)
    except (ValueError, LedgerError) as exc:
        click.echo(f"Error: invalid initial fee {cfg.initial_fee!r}: {exc}", err=True)
        sys.exit(1)

    state = _with_store(
        cfg,
        lambda store: bootstrap_ledger(
            store, cfg.admin, fee, cfg.allowed_signer, cfg.domain_id,
        ),
    )
    click.echo("Ledger initialized")
    click.echo(f"  Admin:    {state.admin}")
    click.echo(f"  Signer:   {state.allowed_signer}")
    click.echo(f"  Domain:   {state.domain_id}")
    click.echo(f"  DB path:  {cfg.db_path}")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configuration and ledger state."""
    cfg = load_config(ctx.obj["config_path"])
    click.echo(f"Admin:      {cfg.admin or '(not set)'}")
    click.echo(f"Signer:     {cfg.allowed_signer or '(not set)'}")
    click.echo(f"Domain:     {cfg.domain_id}")
    click.echo(f"DB path:    {cfg.db_path}")
    click.echo(f"Secret:     {'***configured***' if cfg.signer_secret else '(not set)'}")

    async def _status(store):
        async with store.reading():
            state = await store.get_state()
            if state is None:
                return None
            fee_cfg = await store.get_fee_config()
            products = await store.get_product_ids()
            sellers = await store.get_whitelisted()
            counts = {
                s: len(await store.get_tickets_by_status(s)) for s in TicketStatus
            }
        return state, fee_cfg, products, sellers, counts

    result = _with_store(cfg, _status)
    click.echo("")
    if result is None:
        click.echo("Ledger:     NOT INITIALIZED")
        click.echo("  Run 'escrow-ledger init' to create it.")
        return

    state, fee_cfg, products, sellers, counts = result
    click.echo("Ledger:     INITIALIZED")
    click.echo(f"  Sequence:       {state.sequence}")
    click.echo(f"  Auth nonce:     {state.auth_nonce}")
    click.echo(f"  Fee:            {_pct(fee_cfg.current)}")
    if fee_cfg.pending is not None:
        click.echo(f"  Pending fee:    {_pct(fee_cfg.pending)} (unlocks at {fee_cfg.unlock_at})")
    click.echo(f"  Products:       {len(products)}")
    click.echo(f"  Whitelisted:    {len(sellers)}")
    for s, n in counts.items():
        click.echo(f"  Tickets {s.name.lower():<8}{n}")


# ── Whitelist ──────────────────────────────────────────


@cli.group()
def whitelist():
    """Manage self-service sellers."""
    pass


@whitelist.command("add")
@click.argument("address")
@click.pass_context
def whitelist_add(ctx: click.Context, address: str) -> None:
    """Whitelist a seller address."""
    cfg = load_config(ctx.obj["config_path"])
    _require_admin(cfg)
    _with_store(cfg, lambda store: WhitelistRegistry(store).add_whitelisted_seller(cfg.admin, address))
    click.echo(f"Whitelisted {address}")


@whitelist.command("remove")
@click.argument("address")
@click.pass_context
def whitelist_remove(ctx: click.Context, address: str) -> None:
    """Remove a seller address from the whitelist."""
    cfg = load_config(ctx.obj["config_path"])
    _require_admin(cfg)
    _with_store(
        cfg, lambda store: WhitelistRegistry(store).remove_whitelisted_seller(cfg.admin, address),
    )
    click.echo(f"Removed {address}")


@whitelist.command("list")
@click.pass_context
def whitelist_list(ctx: click.Context) -> None:
    """List whitelisted sellers."""
    cfg = load_config(ctx.obj["config_path"])
    sellers = _with_store(cfg, lambda store: WhitelistRegistry(store).get_whitelisted_sellers())
    if not sellers:
        click.echo("No whitelisted sellers.")
        return
    for address in sellers:
        click.echo(address)


# ── Fees ───────────────────────────────────────────────


@cli.group()
def fee():
    """Time-locked platform fee updates."""
    pass


@fee.command("prepare")
@click.argument("percent")
@click.pass_context
def fee_prepare(ctx: click.Context, percent: str) -> None:
    """Propose a new fee, e.g. '2.5' for 2.5%."""
    cfg = load_config(ctx.obj["config_path"])
    _require_admin(cfg)
    try:
        new_fee = fee_from_percent(percent)
    except (ValueError, LedgerError) as exc:
        click.echo(f"Error: invalid fee {percent!r}: {exc}", err=True)
        sys.exit(1)

    fee_cfg = _with_store(
        cfg, lambda store: FeeController(store, SystemClock()).prepare_fee(cfg.admin, new_fee),
    )
    click.echo(f"Fee {_pct(new_fee)} prepared, unlocks at {fee_cfg.unlock_at}")


@fee.command("implement")
@click.pass_context
def fee_implement(ctx: click.Context) -> None:
    """Apply the prepared fee once its time lock has passed."""
    cfg = load_config(ctx.obj["config_path"])
    _require_admin(cfg)
    fee_cfg = _with_store(
        cfg, lambda store: FeeController(store, SystemClock()).implement_fee(cfg.admin),
    )
    click.echo(f"Fee is now {_pct(fee_cfg.current)}")


# ── Catalog ────────────────────────────────────────────


@cli.command("batch-submit")
@click.argument("filename", type=click.Path(exists=True, dir_okay=False))
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def batch_submit(ctx: click.Context, filename: str, yes: bool) -> None:
    """Submit every product listed in a globalList JSON file."""
    cfg = load_config(ctx.obj["config_path"])
    _require_admin(cfg)

    with open(filename) as f:
        data = json.load(f)
    try:
        product_ids, sellers, prices, tokens, stocks = parse_catalog_listing(data)
    except (KeyError, ValueError) as exc:
        click.echo(f"Error: malformed catalog file: {exc}", err=True)
        sys.exit(1)

    if not product_ids:
        click.echo("Nothing to submit.")
        return

    for item in zip(product_ids, sellers, prices, tokens, stocks):
        click.echo("  %d %s %d %s stock=%d" % item)
    if not yes:
        click.confirm(f"\nSubmit {len(product_ids)} products?", abort=True)

    async def _submit(store):
        batch = BatchOperator(store, ProductCatalog(store))
        return await batch.batch_submit_product(
            cfg.admin, product_ids, sellers, prices, tokens, stocks,
        )

    products = _with_store(cfg, _submit)
    click.echo(f"Submitted {len(products)} products")


# ── Escrow ─────────────────────────────────────────────


@cli.command()
@click.option(
    "--status", "status_filter", default=None,
    type=click.Choice([s.name.lower() for s in TicketStatus]),
    help="Only show tickets in this status",
)
@click.pass_context
def tickets(ctx: click.Context, status_filter: str | None) -> None:
    """List tickets and the custody each token should hold."""
    cfg = load_config(ctx.obj["config_path"])
    statuses = [TicketStatus[status_filter.upper()]] if status_filter else list(TicketStatus)

    async def _tickets(store):
        async with store.reading():
            await require_state(store)
            found = []
            for s in statuses:
                found.extend(await store.get_tickets_by_status(s))
            expected = await expected_custody(store)
        return sorted(found, key=lambda t: t.created_at), expected

    found, expected = _with_store(cfg, _tickets)
    if not found:
        click.echo("No tickets.")
    for t in found:
        click.echo(
            f"{t.ticket_id[:16]}  product={t.product_id}  buyer={t.buyer[:16]}  "
            f"{t.status.name:<8}  deposit={t.deposit} {t.token_paid}"
        )

    if expected:
        click.echo("\nExpected custody:")
        for token, amount in sorted(expected.items()):
            click.echo(f"  {token}: {amount}")


@cli.command()
@click.argument("token")
@click.pass_context
def claimable(ctx: click.Context, token: str) -> None:
    """Show claimable fee and shipping balances for TOKEN."""
    cfg = load_config(ctx.obj["config_path"])
    token = normalize_token(token)

    async def _claimable(store):
        async with store.reading():
            await require_state(store)
            return (
                await store.get_claimable(BalanceKind.FEE, token),
                await store.get_claimable(BalanceKind.SHIPPING, token),
            )

    fees, shipping = _with_store(cfg, _claimable)
    click.echo(f"Token:      {token}")
    click.echo(f"Fees:       {fees}")
    click.echo(f"Shipping:   {shipping}")


@cli.command("sign-shipping")
@click.option("--product-id", type=int, required=True, help="Product being purchased")
@click.option("--buyer", required=True, help="Buyer account id (G...)")
@click.option("--cost", type=int, required=True, help="Shipping cost in token base units")
@click.option(
    "--nonce", type=int, default=None,
    help="Nonce (defaults to the ledger counter, which only advances when an"
    " authorization is used; pass distinct nonces to issue several identical"
    " authorizations before any is used)",
)
@click.pass_context
def sign_shipping(
    ctx: click.Context, product_id: int, buyer: str, cost: int, nonce: int | None,
) -> None:
    """Issue a one-time shipping authorization for a purchase."""
    cfg = load_config(ctx.obj["config_path"])
    _require_signer_secret(cfg)
    if not is_valid_account(buyer):
        click.echo(f"Error: invalid buyer {buyer!r}", err=True)
        sys.exit(1)
    if not 0 < product_id <= MAX_UINT256 or not 0 <= cost <= MAX_UINT256:
        click.echo("Error: product id or cost out of range", err=True)
        sys.exit(1)
    if nonce is not None and not 0 <= nonce <= MAX_UINT256:
        click.echo(f"Error: invalid nonce {nonce}", err=True)
        sys.exit(1)
    keypair = Keypair.from_secret(cfg.signer_secret)

    async def _state(store):
        async with store.reading():
            return await require_state(store)

    state = _with_store(cfg, _state)
    if keypair.public_key != state.allowed_signer:
        click.echo(
            f"Warning: signer {keypair.public_key[:16]} is not the ledger's allowed signer",
            err=True,
        )
    if nonce is None:
        nonce = _with_store(cfg, lambda store: ShippingAuthorizationVerifier(store).next_nonce())

    auth = sign_shipping_authorization(keypair, state.domain_id, product_id, buyer, cost, nonce)

    click.echo(f"Product:    {product_id}")
    click.echo(f"Buyer:      {buyer}")
    click.echo(f"Cost:       {cost}")
    click.echo(f"Nonce:      {nonce}")
    click.echo(f"Signature:  {auth.signature_hex}")
