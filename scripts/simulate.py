"""
Checkout Load Simulation Script

Fires many concurrent guest checkouts at a running API to exercise the
session lifecycle end to end: open session, submit, payment success.
Run from project root: python scripts/simulate.py

Author: Storefront Team
Version: 1.0.0
"""

import asyncio
import sys
import os
import random
import time
import argparse
from datetime import datetime
from typing import Any

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_CHECKOUTS = 50

# Sample data for random checkouts
FIRST_NAMES = ["John", "Jane", "Mike", "Sarah", "Tom", "Emma", "David", "Lisa", "Chris", "Amy"]
LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis", "Wilson", "Taylor"]
STREETS = ["Main St", "Broadway", "5th Avenue", "Park Ave", "Madison Ave", "Lexington Ave", "Amsterdam Ave"]
VALID_ZIPS = ["10001", "10002", "10003", "10004", "10005", "10006", "10007", "10008", "10009", "10010"]
MENU_ITEMS = [
    {"id": "margherita", "name": "Pizza Margherita", "price": 14.99},
    {"id": "pepperoni", "name": "Pepperoni Pizza", "price": "16.99"},
    {"id": "caesar", "name": "Caesar Salad", "price": 8.99},
    {"id": "garlic-bread", "name": "Garlic Bread", "price": 5.99},
    {"id": "carbonara", "name": "Pasta Carbonara", "price": "$13.99"},
    {"id": "tiramisu", "name": "Tiramisu", "price": 7.99},
]


def generate_random_address() -> dict[str, str]:
    """Generate a random, complete shipping address."""
    return {
        "full_name": f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
        "street_address": f"{random.randint(1, 999)} {random.choice(STREETS)}",
        "city": "New York",
        "state_province": "NY",
        "postal_code": random.choice(VALID_ZIPS),
        "country": "US",
        "phone_number": f"(555) {random.randint(100, 999)}-{random.randint(1000, 9999)}",
    }


def generate_random_lines() -> list[dict]:
    """Generate random guest cart lines."""
    lines = []
    for item in random.sample(MENU_ITEMS, random.randint(1, 4)):
        lines.append({
            "id": f"line-{item['id']}",
            "menu_item_id": item["id"],
            "name": item["name"],
            "price": item["price"],
            "quantity": random.randint(1, 3),
        })
    return lines


def generate_submit_payload() -> dict[str, Any]:
    address = generate_random_address()
    first_name = address["full_name"].split()[0].lower()
    return {
        "address": address,
        "guest_email": f"{first_name}{random.randint(1, 9999)}@example.com",
        "fulfillment_mode": random.choice(["delivery", "pickup"]),
        "order_note": random.choice([None, "Extra napkins", "Ring doorbell", "Leave at door"]),
    }


# =============================================================================
# CHECKOUT FLOW
# =============================================================================

async def run_checkout(
    client: httpx.AsyncClient,
    checkout_num: int
) -> dict[str, Any]:
    """Open a guest session, submit it and report payment success."""
    start_time = time.time()
    session_id = None

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/checkout/sessions",
            json={"lines": generate_random_lines()},
            timeout=30.0
        )
        if response.status_code != 201:
            return _failure(checkout_num, "open", response, start_time)
        session_id = response.json()["session_id"]

        response = await client.post(
            f"{API_BASE_URL}/api/checkout/sessions/{session_id}/submit",
            json=generate_submit_payload(),
            timeout=30.0
        )
        if response.status_code != 200:
            return _failure(checkout_num, "submit", response, start_time)
        intent = response.json()

        response = await client.post(
            f"{API_BASE_URL}/api/checkout/sessions/{session_id}/payment-success",
            timeout=30.0
        )
        if response.status_code != 200 or not response.json().get("accepted"):
            return _failure(checkout_num, "payment", response, start_time)

        return {
            "checkout_num": checkout_num,
            "success": True,
            "order_id": intent.get("order_id"),
            "total": intent.get("amount"),
            "time": round(time.time() - start_time, 3),
        }

    except Exception as e:
        return {
            "checkout_num": checkout_num,
            "success": False,
            "stage": "network",
            "error": str(e),
            "time": round(time.time() - start_time, 3),
        }
    finally:
        if session_id:
            try:
                await client.delete(f"{API_BASE_URL}/api/checkout/sessions/{session_id}")
            except httpx.HTTPError:
                pass


def _failure(checkout_num: int, stage: str, response: httpx.Response, start_time: float) -> dict[str, Any]:
    return {
        "checkout_num": checkout_num,
        "success": False,
        "stage": stage,
        "error": f"HTTP {response.status_code}: {response.text[:100]}",
        "time": round(time.time() - start_time, 3),
    }


# =============================================================================
# MAIN SIMULATION
# =============================================================================

async def run_simulation(num_checkouts: int = TOTAL_CHECKOUTS):
    """
    Run the concurrent checkout simulation.

    Args:
        num_checkouts: Number of checkouts to fire at once
    """
    print("=" * 70)
    print("🔥 CHECKOUT SIMULATION - HIGH CONCURRENCY TEST")
    print("=" * 70)
    print(f"📋 Total Checkouts: {num_checkouts}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        print("\n🚀 Firing guest checkouts...\n")
        tasks = [run_checkout(client, i + 1) for i in range(num_checkouts)]
        results = await asyncio.gather(*tasks)

    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r.get("success")]
    failed = [r for r in results if not r.get("success")]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)

    print(f"\n✅ Successful Checkouts: {len(successful)}/{num_checkouts}")
    print(f"❌ Failed Checkouts: {len(failed)}/{num_checkouts}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        times = [r["time"] for r in successful]
        avg_time = round(sum(times) / len(times), 3)
        total_revenue = sum(float(r.get("total") or 0) for r in successful)

        print(f"\n📈 Performance Metrics:")
        print(f"   Average Checkout: {avg_time}s")
        print(f"   Fastest: {min(times)}s")
        print(f"   Slowest: {max(times)}s")
        print(f"   💰 Total Charged: ${total_revenue:.2f}")

    if failed:
        print(f"\n⚠️  Failed Checkout Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Checkout #{f['checkout_num']} [{f.get('stage', 'unknown')}]: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("🔍 VERIFICATION STEPS")
    print("=" * 70)
    print("1. Check Celery terminal - confirmation tasks should complete")
    print(f"2. Visit {API_BASE_URL}/health to see active sessions")
    print(f"3. Visit {API_BASE_URL}/docs to inspect orders")
    print("=" * 70)

    return results


# =============================================================================
# PRE-FLIGHT CHECKS
# =============================================================================

async def test_single_flows():
    """Exercise each stateless endpoint once before the load run."""
    print("\n" + "=" * 70)
    print("🧪 TESTING INDIVIDUAL FLOWS")
    print("=" * 70)

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Test 1: Health
        print("\n1️⃣ Health Check...")
        response = await client.get(f"{API_BASE_URL}/health")
        if response.status_code == 200:
            data = response.json()
            print(f"   ✅ Status: {data.get('status')}")
            print(f"   Database: {data.get('database')}")
            print(f"   Redis: {data.get('redis')}")
        else:
            print(f"   ❌ Failed: {response.text}")
            return False

        # Test 2: Quote
        print("\n2️⃣ Cart Quote...")
        response = await client.post(
            f"{API_BASE_URL}/api/checkout/quote",
            json={"lines": generate_random_lines()}
        )
        if response.status_code == 200:
            data = response.json()
            print(f"   ✅ Subtotal: ${data.get('subtotal')}")
            print(f"   Total: ${data.get('grand_total')}")
        else:
            print(f"   ❌ Failed: {response.text}")
            return False

        # Test 3: Address validation
        print("\n3️⃣ Address Validation...")
        response = await client.post(
            f"{API_BASE_URL}/api/checkout/address/validate",
            json={"address": generate_random_address(), "require_phone": True}
        )
        if response.status_code == 200:
            data = response.json()
            print(f"   ✅ Valid: {data.get('valid')}")
            if data.get("errors"):
                print(f"   Errors: {data.get('errors')}")
        else:
            print(f"   ❌ Failed: {response.text}")
            return False

        # Test 4: Single checkout
        print("\n4️⃣ Single Guest Checkout...")
        result = await run_checkout(client, 1)
        if result["success"]:
            print(f"   ✅ Order {result['order_id']} paid")
            print(f"   Total: ${result['total']}")
        else:
            print(f"   ⚠️ Failed at {result.get('stage')}: {result.get('error')}")

    print("\n" + "=" * 70)
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Checkout Load Simulation Script")
    parser.add_argument("--checkouts", type=int, default=TOTAL_CHECKOUTS, help="Number of checkouts")
    parser.add_argument("--skip-tests", action="store_true", help="Skip individual tests")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")

    # Run tests first
    if not args.skip_tests:
        success = asyncio.run(test_single_flows())
        if not success:
            print("\n❌ Pre-flight tests failed. Fix issues before running simulation.")
            sys.exit(1)

        print("\n✅ Pre-flight tests passed!")
        input("\nPress Enter to start checkout simulation...")

    # Run simulation
    asyncio.run(run_simulation(num_checkouts=args.checkouts))
