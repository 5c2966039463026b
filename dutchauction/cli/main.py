"""
Dutch Auction CLI - Command Line Interface for the auction engine

Main entry point for all CLI commands.
"""

from decimal import Decimal

import click
from pydantic import ValidationError

from dutchauction.utils.logger import setup_logging, get_logger


def format_units(amount: int, decimals: int) -> str:
    """Render a subunit amount in display units."""
    if decimals == 0:
        return str(amount)
    return f"{Decimal(amount).scaleb(-decimals).normalize():f}"


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--env-file", default=None, type=click.Path(dir_okay=False), help="Load settings from a .env file")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, env_file):
    """Dutch Auction - Descending-price token auction engine"""
    import logging

    from dutchauction.core.config import load_config

    try:
        config = load_config(env_file)
    except ValidationError as exc:
        raise click.BadParameter(str(exc), param_hint="DUTCH_AUCTION_* settings")

    level = logging.DEBUG if debug else logging.INFO
    setup_logging(level=level, log_dir=str(config.log_dir))

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# =============================================================================
# Config Command
# =============================================================================


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Print the effective auction configuration"""
    config = ctx.obj["config"]
    for key, value in config.model_dump().items():
        click.echo(f"  {key}: {value}")


# =============================================================================
# Curve Command
# =============================================================================


@cli.command("curve")
@click.option("--hours", default=24, show_default=True, help="Time span to print")
@click.option("--step", default=3600, show_default=True, help="Seconds between rows")
@click.pass_context
def curve(ctx, hours, step):
    """Print the price and required reserve over time"""
    from dutchauction.core.auction import AuctionConfig, AuctionState, PriceCurve
    from dutchauction.core.chain import Clock

    config = ctx.obj["config"]
    if step <= 0:
        raise click.BadParameter("step must be positive", param_hint="--step")

    auction_config = AuctionConfig(
        price_factor=config.price_factor,
        price_const=config.price_const,
        owner_fr=config.owner_fr,
        owner_fr_dec=config.owner_fr_dec,
        tokens_auctioned=config.supply_subunits,
        token_multiplier=config.token_multiplier,
    )
    price_curve = PriceCurve(auction_config, AuctionState(), Clock(timestamp=0))

    click.echo(f"{'elapsed (s)':>12}  {'price':>32}  {'reserve to end':>36}")
    for elapsed in range(0, hours * 3600 + 1, step):
        price = price_curve.price_at(elapsed)
        reserve = price_curve.reserve_at(price)
        click.echo(
            f"{elapsed:>12}  {price:>32}  {reserve:>36}"
        )


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option("--bidders", default=3, show_default=True, help="Number of bidders")
@click.option("--interval", default=1800, show_default=True, help="Seconds between bids")
@click.option("--batch", default=2, show_default=True, help="Receivers per claim call")
@click.pass_context
def demo(ctx, bidders, interval, batch):
    """Simulate a complete auction from deployment to trading"""
    from dutchauction.core.auction import DutchAuction, Stage
    from dutchauction.core.chain import Host
    from dutchauction.core.token import ReserveToken
    from dutchauction.crypto import bytes_to_hex, generate_keypair

    logger = get_logger("demo")
    config = ctx.obj["config"]
    if bidders < 1 or batch < 1:
        raise click.BadParameter("bidders and batch must be at least 1")

    click.echo("=" * 60)
    click.echo("  DUTCH AUCTION - DEMO")
    click.echo("=" * 60)
    click.echo()

    # Deployment
    host = Host()
    owner = generate_keypair().address
    auction = DutchAuction(
        host,
        owner,
        price_factor=config.price_factor,
        price_const=config.price_const,
        owner_fr=config.owner_fr,
        owner_fr_dec=config.owner_fr_dec,
    )
    token = ReserveToken(host, owner, decimals=config.token_decimals)
    token.issue(owner, auction.address, config.supply_subunits)
    token.bind_auction(owner, auction.address)
    auction.setup(owner, token)
    auction.start_auction(owner)

    click.echo(f"Auction: {bytes_to_hex(auction.address)}")
    click.echo(f"  Supply:        {format_units(config.supply_subunits, config.token_decimals)}")
    click.echo(f"  Opening price: {auction.price()}")
    click.echo()

    # Bidding: each early bidder covers a share of what is missing,
    # the last one overbids and gets clamped.
    addresses = []
    for i in range(bidders):
        bidder = generate_keypair().address
        host.clock.advance(interval)
        missing = auction.missing_reserve_to_end_auction()
        if i < bidders - 1:
            value = max(1, missing // (bidders - i + 1))
        else:
            value = missing + missing // 10 + 1

        host.fund(bidder, value)
        receipt = auction.bid(bidder, value)
        addresses.append(bidder)
        click.echo(
            f"  t+{host.clock.timestamp - auction.state.start_time:>6}s  "
            f"{bytes_to_hex(bidder)[:10]}  accepted={receipt.accepted}  refunded={receipt.refunded}"
        )
        if receipt.ended:
            break

    if auction.stage != Stage.ENDED:
        click.echo("Auction did not end; no claims to settle.")
        return

    click.echo()
    click.echo(f"Final price: {auction.final_price}")
    click.echo()

    # Settlement
    for start in range(0, len(addresses), batch):
        allocations = auction.claim_tokens_batch(addresses[start:start + batch])
        logger.debug(f"Batch {start // batch}: {len(allocations)} allocations")

    for bidder in addresses:
        click.echo(
            f"  {bytes_to_hex(bidder)[:10]}  tokens={format_units(token.balance_of(bidder), config.token_decimals)}"
        )
    click.echo(f"  owner       tokens={format_units(token.balance_of(owner), config.token_decimals)}")
    click.echo()
    click.echo(f"Stage:   {auction.stage.name}")
    click.echo(f"Reserve: {token.reserve}")
    click.echo(f"Unsold:  {format_units(token.balance_of(auction.address), config.token_decimals)}")
    click.echo(f"Events:  {len(auction.events)}, head={bytes_to_hex(auction.events.head)[:18]}")


if __name__ == "__main__":
    cli()
