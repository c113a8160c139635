"""
Dining Room Simulation Script

Runs many diner sessions concurrently against an Order Service, each with
its own cart, submission flow and tracking poller, while one staff console
walks the orders through the kitchen pipeline.

Start the sandbox first:
    uvicorn tableside.main:app --port 8001
Then run from project root:
    python scripts/simulate.py --tables 12

Version: 1.0.0
"""

import argparse
import asyncio
import random
import sys
import time
from datetime import datetime
from typing import Any

from tableside.cart import Cart, MenuItem
from tableside.console import StaffOrderConsole
from tableside.core.config import get_settings, setup_logging
from tableside.money import format_price
from tableside.registry import OrderStatus
from tableside.services.orders import BaseOrderService, HttpOrderService, MockOrderService
from tableside.submission import OrderSubmissionFlow
from tableside.tracking import OrderTrackingPoller

RESTAURANT_ID = 1

MENU = [
    MenuItem(1, "Chicken Tagine", "85.00"),
    MenuItem(2, "Lamb Couscous", "95.00"),
    MenuItem(3, "Harira", "25.00"),
    MenuItem(4, "Zaalouk", "30.00"),
    MenuItem(5, "Pastilla", "70.00"),
    MenuItem(6, "Mint Tea", "15.00"),
    MenuItem(7, "Orange Juice", "20.00"),
    MenuItem(8, "Chebakia", "18.00", available=False),
]
NOTES = [None, "", "  ", "No onions", "Extra spicy", "Well done"]


def fill_cart(cart: Cart) -> None:
    """Add a few random menu items, some with notes."""
    for _ in range(random.randint(1, 5)):
        line = cart.add_item(random.choice(MENU))
        if line is not None and random.random() < 0.4:
            cart.set_note(line.item_id, random.choice(NOTES) or "")
    if len(cart) and random.random() < 0.3:
        cart.set_quantity(cart.lines[0].item_id, random.randint(1, 2))


# =============================================================================
# DINER SESSIONS
# =============================================================================

async def run_table(
    service: BaseOrderService,
    table_id: int,
    poll_seconds: float,
) -> dict[str, Any]:
    """Order once for a table and keep tracking it for a short while."""
    cart = Cart(restaurant_id=RESTAURANT_ID, table_id=table_id)
    fill_cart(cart)
    total = cart.summary()["total"]

    async with OrderTrackingPoller(
        service, RESTAURANT_ID, table_id, interval=poll_seconds
    ) as tracker:
        flow = OrderSubmissionFlow(service, cart, tracker=tracker)
        start_time = time.time()
        outcome = await flow.submit()
        elapsed = round(time.time() - start_time, 3)

        await asyncio.sleep(poll_seconds * 2)
        flow.close()

        tracked = tracker.orders
        return {
            "table": table_id,
            "success": outcome.success,
            "order_id": outcome.order.id if outcome.order else None,
            "total": total,
            "status": tracked[0].status.value if tracked else None,
            "error": None if outcome.success else outcome.message,
            "time": elapsed,
        }


# =============================================================================
# STAFF SESSION
# =============================================================================

async def run_kitchen(service: BaseOrderService, rounds: int, pause: float) -> int:
    """Advance every visible order one step per round. Returns the number of moves."""
    moves = 0
    async with StaffOrderConsole(service, RESTAURANT_ID, refresh_interval=pause) as console:
        for _ in range(rounds):
            await asyncio.sleep(pause)
            await console.refresh()
            for order in console.orders:
                options = [
                    status for status in console.available_transitions(order)
                    if status is not OrderStatus.CANCELLED or random.random() < 0.1
                ]
                if options and await console.update_status(order.id, options[0]):
                    moves += 1
    return moves


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    service: BaseOrderService,
    tables: int,
    poll_seconds: float,
) -> dict[str, Any]:
    """
    Run the dining room simulation.

    Args:
        service: Order Service to talk to
        tables: Number of concurrent diner sessions
        poll_seconds: Tracking poll interval
    """
    print("=" * 70)
    print("🍽️  DINING ROOM SIMULATION")
    print("=" * 70)
    print(f"📋 Tables: {tables}")
    print(f"🎯 Order Service: {service.provider_name}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()
    kitchen = asyncio.create_task(run_kitchen(service, rounds=4, pause=poll_seconds))
    results = await asyncio.gather(
        *(run_table(service, table_id, poll_seconds) for table_id in range(1, tables + 1))
    )
    moves = await kitchen
    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Orders placed: {len(successful)}/{tables}")
    print(f"❌ Failed: {len(failed)}/{tables}")
    print(f"🧑‍🍳 Status changes by staff: {moves}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        revenue = sum(r["total"] for r in successful)
        print(f"\n📈 Average submit: {avg_time}s")
        print(f"   💰 Total: {format_price(revenue, get_settings().currency)}")
        for r in successful:
            print(f"   Table {r['table']:>3}: order #{r['order_id']} -> {r['status']}")

    if failed:
        print("\n⚠️  Failed tables (showing first 5):")
        for r in failed[:5]:
            print(f"   Table {r['table']}: {r['error']}")

    print("=" * 70)
    return {
        "tables": tables,
        "successful": len(successful),
        "failed": len(failed),
        "moves": moves,
        "total_time": total_time,
    }


async def main(args: argparse.Namespace) -> int:
    if args.in_memory:
        service: BaseOrderService = MockOrderService(
            failure_rate=args.failure_rate, max_latency=0.2, envelope="laravel"
        )
    else:
        service = HttpOrderService(base_url=args.base_url)
        if not await service.health_check():
            print(f"\n❌ Order Service at {args.base_url} is not reachable.")
            await service.close()
            return 1

    try:
        summary = await run_simulation(service, args.tables, args.poll)
    finally:
        await service.close()
    return 0 if summary["successful"] else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Dining Room Simulation Script")
    parser.add_argument("--tables", type=int, default=10, help="Number of tables")
    parser.add_argument("--poll", type=float, default=1.0, help="Tracking poll interval (s)")
    parser.add_argument("--base-url", default=get_settings().api_base_url, help="Order Service URL")
    parser.add_argument("--in-memory", action="store_true", help="Skip HTTP, use the mock service")
    parser.add_argument("--failure-rate", type=float, default=0.05, help="Mock failure rate")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(main(args)))
