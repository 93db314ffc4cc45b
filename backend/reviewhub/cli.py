"""
reviewhub command line demos.

Runs the concurrency scenarios against a live Valkey and a SQL store:

    reviewhub seckill --stock 3 --users 4
    reviewhub stampede --requests 200
"""

import asyncio
import time
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .cache.config import ValkeyConnectionError
from .cache.utils import key_manager
from .container import ServiceContainer
from .database.config import StoreUnavailableError
from .database.models import SeckillVoucher, Shop, VoucherOrder
from .database.repositories import VoucherRepository
from .models.enums import QueryStrategy, SeckillStatus
from .models.voucher import SeckillResult
from .utils.config import configure_logging, load_settings

app = typer.Typer(help="Cache consistency and concurrency control demos")
console = Console()

DEMO_VOUCHER_ID = 1
DEMO_SHOP_ID = 1


def _build_container(database_url: str) -> ServiceContainer:
    settings = load_settings()
    configure_logging(settings.log_level)
    return ServiceContainer.build(settings=settings, database_url=database_url)


def _seed_voucher(services: ServiceContainer, stock: int) -> None:
    now = datetime.now()
    with services.db.get_session_context() as session:
        session.query(VoucherOrder).filter(VoucherOrder.voucher_id == DEMO_VOUCHER_ID).delete()
        session.query(SeckillVoucher).filter(SeckillVoucher.voucher_id == DEMO_VOUCHER_ID).delete()
        session.add(SeckillVoucher(
            voucher_id=DEMO_VOUCHER_ID,
            stock=stock,
            begin_time=now - timedelta(hours=1),
            end_time=now + timedelta(hours=1)
        ))


def _seed_shop(services: ServiceContainer) -> None:
    with services.db.get_session_context() as session:
        if session.get(Shop, DEMO_SHOP_ID) is None:
            session.add(Shop(
                id=DEMO_SHOP_ID,
                name="103 Tea House",
                type_id=1,
                area="Riverside",
                address="1 Harbour Road",
                avg_price=80,
                score=37,
                open_hours="10:00-22:00"
            ))


async def _run_seckill(database_url: str, stock: int, users: int, attempts: int) -> None:
    async with _build_container(database_url) as services:
        _seed_voucher(services, stock)

        tasks = [
            services.seckill.seckill_voucher(DEMO_VOUCHER_ID, user_id)
            for user_id in range(1, users + 1)
            for _ in range(attempts)
        ]
        start = time.time()
        results: List[SeckillResult] = await asyncio.gather(*tasks)
        elapsed = time.time() - start

        with services.db.get_session_context() as session:
            voucher = VoucherRepository.get_by_id(session, DEMO_VOUCHER_ID)
            orders = VoucherRepository.list_orders(session, DEMO_VOUCHER_ID)

    table = Table(title="Seckill results", box=box.ROUNDED)
    table.add_column("User", style="cyan", justify="right")
    table.add_column("Status")
    table.add_column("Order id", justify="right")
    table.add_column("Message", style="dim")

    for result in sorted(results, key=lambda r: r.user_id):
        style = "green" if result.success else "yellow"
        table.add_row(
            str(result.user_id),
            f"[{style}]{result.status.value}[/{style}]",
            str(result.order_id or "-"),
            result.message
        )

    counts = Counter(result.status for result in results)
    console.print(table)
    console.print(Panel.fit(
        f"Requests: {len(results)} in {elapsed * 1000:.0f}ms\n"
        f"Successes: [green]{counts[SeckillStatus.SUCCESS]}[/green]  "
        f"Out of stock: {counts[SeckillStatus.OUT_OF_STOCK]}  "
        f"Duplicates: {counts[SeckillStatus.DUPLICATE_PURCHASE]}\n"
        f"Orders stored: {len(orders)}  Remaining stock: {voucher.stock if voucher else '-'}",
        title="Summary",
        border_style="cyan"
    ))


async def _run_stampede(database_url: str, requests: int, strategy: QueryStrategy) -> None:
    async with _build_container(database_url) as services:
        _seed_shop(services)
        await services.cache.delete(key_manager.shop_key(DEMO_SHOP_ID))
        if strategy == QueryStrategy.LOGICAL_EXPIRE:
            await services.shops.warm_up(DEMO_SHOP_ID, expire_seconds=0)

        start = time.time()
        results = await asyncio.gather(*[
            services.shops.query_by_id(DEMO_SHOP_ID, strategy) for _ in range(requests)
        ])
        elapsed = time.time() - start
        await services.rebuild_executor.join()

        stats = services.cache_client.stats

    table = Table(title=f"Stampede ({strategy.value})", box=box.ROUNDED, show_lines=True)
    table.add_column("Metric", style="cyan bold")
    table.add_column("Value", justify="right")

    table.add_row("Concurrent reads", str(requests))
    table.add_row("Reads with a value", str(sum(1 for r in results if r is not None)))
    table.add_row("Store queries", f"[bold]{stats.store_loads}[/bold]")
    table.add_row("Cache hits", str(stats.cache_hits))
    table.add_row("Waited for rebuild", str(stats.mutex_waits))
    table.add_row("Timed out waiting", str(stats.mutex_timeouts))
    table.add_row("Stale reads served", str(stats.stale_served))
    table.add_row("Background rebuilds", str(stats.rebuilds_submitted))
    table.add_row("Elapsed", f"{elapsed * 1000:.0f}ms")

    console.print(table)


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except (ValkeyConnectionError, StoreUnavailableError) as e:
        console.print(f"[red]Backend unavailable: {e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def seckill(
    stock: int = typer.Option(3, "--stock", "-s", help="Voucher stock"),
    users: int = typer.Option(4, "--users", "-u", help="Distinct users buying"),
    attempts: int = typer.Option(1, "--attempts", "-a", help="Concurrent requests per user"),
    database_url: str = typer.Option("sqlite:///reviewhub_demo.db", "--database-url", help="Store URL"),
):
    """Race users for a limited voucher and show who got an order."""
    if stock < 0 or users < 1 or attempts < 1:
        console.print("[red]stock must be >= 0, users and attempts >= 1[/red]")
        raise typer.Exit(code=2)
    _run(_run_seckill(database_url, stock, users, attempts))


@app.command()
def stampede(
    requests: int = typer.Option(100, "--requests", "-r", help="Concurrent reads of one shop"),
    strategy: QueryStrategy = typer.Option(QueryStrategy.MUTEX, "--strategy", help="Miss handling strategy"),
    database_url: str = typer.Option("sqlite:///reviewhub_demo.db", "--database-url", help="Store URL"),
):
    """Fire concurrent reads at a cold shop entry and count store queries."""
    if requests < 1:
        console.print("[red]requests must be >= 1[/red]")
        raise typer.Exit(code=2)
    _run(_run_stampede(database_url, requests, strategy))


def main(argv: Optional[List[str]] = None) -> None:
    app(args=argv)


if __name__ == "__main__":
    main()
