"""
Offline Simulation Script

Drives the control API through an offline period: takes the client
offline, queues a burst of random mutations, reconnects and watches the
queue drain.
Run from project root (with the API started in development mode):
    python scripts/simulate.py

Author: Khalil_Bannouri
Version: 1.0.0
"""

import asyncio
import sys
import random
import time
import argparse
from typing import Any, Optional

import httpx

# Configuration
API_BASE_URL = "http://localhost:8002"
TOTAL_ACTIONS = 25
DRAIN_TIMEOUT_SECONDS = 120

# Sample data for random mutations
MENU_ITEMS = [
    {"menuItemId": "item_taco", "name": "Carne Asada Taco", "price": 3.99},
    {"menuItemId": "item_burrito", "name": "Veggie Burrito", "price": 9.49},
    {"menuItemId": "item_quesadilla", "name": "Chicken Quesadilla", "price": 8.99},
    {"menuItemId": "item_nachos", "name": "Loaded Nachos", "price": 7.49},
    {"menuItemId": "item_horchata", "name": "Horchata", "price": 2.99},
]
PICKUP_LOCATIONS = ["5th & Main", "Central Park East", "Harbor Market", "Tech Campus Lot B"]
NAMES = ["Sam", "Alex", "Jordan", "Casey", "Riley", "Morgan"]


def generate_order_items() -> list[dict[str, Any]]:
    """Generate random order items."""
    items = []
    for _ in range(random.randint(1, 3)):
        item = random.choice(MENU_ITEMS)
        items.append({
            "menuItemId": item["menuItemId"],
            "quantity": random.randint(1, 3),
            "specialInstructions": random.choice([None, "No onions", "Extra salsa"]),
        })
    return items


def generate_action(num: int) -> dict[str, Any]:
    """Generate an EnqueueRequest body with a realistic type mix."""
    roll = random.random()

    if roll < 0.5:
        local_id = f"local_{int(time.time() * 1000)}_{num}"
        return {
            "type": "CREATE_ORDER",
            "payload": {
                "items": generate_order_items(),
                "pickupLocation": random.choice(PICKUP_LOCATIONS),
            },
            "metadata": {"local_order_id": local_id},
        }
    if roll < 0.65:
        return {
            "type": "UPDATE_PROFILE",
            "payload": {"name": random.choice(NAMES)},
        }
    if roll < 0.9:
        item = random.choice(MENU_ITEMS)
        return {
            "type": "ADD_TO_CART",
            "payload": {"menuItemId": item["menuItemId"], "quantity": random.randint(1, 2)},
        }
    return {"type": "CLEAR_CART", "payload": {}}


async def set_connectivity(client: httpx.AsyncClient, online: bool) -> bool:
    response = await client.put(
        f"{API_BASE_URL}/api/connectivity",
        json={"is_connected": online, "type": "wifi" if online else None},
    )
    if response.status_code != 200:
        print(f"   ❌ Could not set connectivity: {response.text[:100]}")
        return False
    print(f"   {'🟢 Online' if online else '🔴 Offline'}")
    return True


async def enqueue(client: httpx.AsyncClient, num: int) -> Optional[dict[str, Any]]:
    """Queue one random mutation."""
    body = generate_action(num)
    try:
        response = await client.post(f"{API_BASE_URL}/api/queue", json=body, timeout=30.0)
    except httpx.HTTPError as e:
        print(f"   ❌ #{num} {body['type']}: {e}")
        return None

    if response.status_code != 201:
        print(f"   ❌ #{num} {body['type']}: {response.text[:100]}")
        return None
    return response.json()


async def wait_for_drain(client: httpx.AsyncClient, timeout: float) -> dict[str, Any]:
    """Poll sync status until the queue is empty or the timeout expires."""
    deadline = time.time() + timeout
    status: dict[str, Any] = {}
    while time.time() < deadline:
        status = (await client.get(f"{API_BASE_URL}/api/sync/status")).json()
        print(
            f"   ⏳ state={status['sync_state']:<8} queued={status['queue_length']:<3} "
            f"conflicts={status['conflict_count']}"
        )
        if status["queue_length"] == 0:
            break
        # Retries stay queued between passes; nudge the next one
        await client.post(f"{API_BASE_URL}/api/sync", timeout=timeout)
        await asyncio.sleep(1)
    return status


async def run_simulation(num_actions: int = TOTAL_ACTIONS) -> dict[str, Any]:
    """Queue mutations while offline, reconnect and report the outcome."""
    print("\n" + "=" * 70)
    print("📴 OFFLINE SIMULATION")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        print("\n1️⃣ Health Check...")
        response = await client.get(f"{API_BASE_URL}/health")
        if response.status_code != 200:
            print(f"   ❌ Failed: {response.text}")
            return {"success": False}
        data = response.json()
        print(f"   ✅ Status: {data.get('status')}")
        print(f"   Storage: {data.get('storage')}")
        print(f"   Transport: {data.get('transport')}")

        print("\n2️⃣ Going offline...")
        if not await set_connectivity(client, False):
            return {"success": False}

        print(f"\n3️⃣ Queueing {num_actions} mutations...")
        start_time = time.time()
        results = await asyncio.gather(*(enqueue(client, i + 1) for i in range(num_actions)))
        queued = [r for r in results if r]
        print(f"   ✅ {len(queued)}/{num_actions} queued in {time.time() - start_time:.2f}s")

        snapshot = (await client.get(f"{API_BASE_URL}/api/queue")).json()
        print("\n📋 DRAIN ORDER (first 10):")
        for action in snapshot["actions"][:10]:
            print(f"   {action['priority']:<6} {action['type']:<15} {action['id']}")

        print("\n4️⃣ Reconnecting...")
        await set_connectivity(client, True)

        print("\n5️⃣ Draining...")
        status = await wait_for_drain(client, DRAIN_TIMEOUT_SECONDS)

        events = (await client.get(f"{API_BASE_URL}/api/events", params={"limit": 1000})).json()
        counts: dict[str, int] = {}
        for event in events["events"]:
            counts[event["kind"]] = counts.get(event["kind"], 0) + 1

        conflicts = (await client.get(f"{API_BASE_URL}/api/conflicts")).json()

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"⏱️  Total Time: {time.time() - start_time:.2f}s")
    print(f"📥 Queued: {len(queued)}")
    print(f"📦 Still queued: {status.get('queue_length')}")
    print(f"⚔️  Conflicts: {conflicts['total']}")
    print("\n📈 Events:")
    for kind, count in sorted(counts.items()):
        print(f"   {kind:<22} {count}")

    print("\n" + "=" * 70)
    print("🔍 VERIFICATION STEPS")
    print("=" * 70)
    print("1. Run: python scripts/verify.py")
    print(f"2. Visit {API_BASE_URL}/docs to resolve any conflicts")
    print("=" * 70)

    return {
        "success": True,
        "queued": len(queued),
        "remaining": status.get("queue_length"),
        "events": counts,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Offline Simulation Script")
    parser.add_argument("--actions", type=int, default=TOTAL_ACTIONS, help="Number of mutations")
    parser.add_argument("--url", default=API_BASE_URL, help="Control API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")

    outcome = asyncio.run(run_simulation(args.actions))
    if not outcome.get("success"):
        sys.exit(1)
