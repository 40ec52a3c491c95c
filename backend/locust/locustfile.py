"""
Locust Load Test Suite

Point the API at the Square sandbox (SQUARE_API_BASE_URL=https://connect.squareupsandbox.com)
so the test card nonce below is accepted.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overselling
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import random
import uuid
from datetime import date, timedelta

from locust import HttpUser, task, between, tag, events

# Square sandbox nonce for an approved card
SANDBOX_CARD_NONCE = "cnon:card-nonce-ok"

# Shared state
OCCASION_IDS = []
CONCURRENCY_SHARE_TOKEN = None
CONCURRENCY_CAPACITY = 10


def purchase_body(share_token, tickets=1):
    return {
        "shareToken": share_token,
        "customerName": f"Load Tester {random.randint(1, 99999)}",
        "customerEmail": f"load_{random.randint(10000, 99999)}@test.com",
        "ticketQuantity": tickets,
        "paymentToken": SANDBOX_CARD_NONCE,
        "idempotencyKey": str(uuid.uuid4()),
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("SETUP: occasions are created by the first user of each class")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 purchasers -> 10 tickets

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT SUM(ticket_quantity) FROM bookings
      WHERE parent_booking_id = X AND status <> 'cancelled';
    Should be <= 10
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global CONCURRENCY_SHARE_TOKEN
        if CONCURRENCY_SHARE_TOKEN:
            return
        resp = self.client.post("/api/v1/occasions/", json={
            "venue": "manor",
            "name": "Concurrency Test Occasion",
            "occasion_date": (date.today() + timedelta(days=30)).isoformat(),
            "capacity": CONCURRENCY_CAPACITY,
            "ticket_price_cents": 100,
        })
        if resp.status_code == 201:
            CONCURRENCY_SHARE_TOKEN = resp.json()["share_token"]
            print(f"\n✓ Created occasion {resp.json()['id']} with {CONCURRENCY_CAPACITY} tickets\n")

    @tag("concurrency")
    @task
    def buy_limited_tickets(self):
        """All users fight for the same 10 tickets."""
        if not CONCURRENCY_SHARE_TOKEN:
            return

        with self.client.post(
            "/occasion-pay-and-book",
            json=purchase_body(CONCURRENCY_SHARE_TOKEN),
            catch_response=True,
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            elif resp.status_code == 400 and "spots remaining" in resp.text:
                resp.success()  # Expected: sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code} {resp.text[:200]}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_occasions_cached(self):
        venue = random.choice(["all", "manor", "hippie"])
        resp = self.client.get(
            f"/api/v1/occasions/?venue={venue}",
            name="/api/v1/occasions/ [cached]",
        )
        if resp.status_code == 200:
            for occasion in resp.json().get("occasions", []):
                if occasion["id"] not in OCCASION_IDS:
                    OCCASION_IDS.append(occasion["id"])

    @tag("throughput", "read")
    @task(3)
    def get_occasion_detail(self):
        if OCCASION_IDS:
            self.client.get(
                f"/api/v1/occasions/{random.choice(OCCASION_IDS)}",
                name="/api/v1/occasions/{id}",
            )

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    Every request must be rejected with 400 before any payment is attempted.
    """
    wait_time = between(0.5, 1.5)

    def _expect_400(self, body, name):
        with self.client.post(
            "/occasion-pay-and-book", json=body, name=name, catch_response=True
        ) as resp:
            if resp.status_code == 400 and resp.json().get("success") is False:
                resp.success()
            else:
                resp.failure(f"Expected 400, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_share_token(self):
        self._expect_400(purchase_body("OCC-NOPE0000"), "pay-and-book [unknown token]")

    @tag("edge")
    @task
    def zero_tickets(self):
        self._expect_400(purchase_body("OCC-NOPE0000", tickets=0), "pay-and-book [zero tickets]")

    @tag("edge")
    @task
    def missing_contact(self):
        body = purchase_body("OCC-NOPE0000")
        body.pop("customerEmail")
        self._expect_400(body, "pay-and-book [no contact]")

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/occasion-pay-and-book",
            data="not json at all",
            headers={"Content-Type": "application/json"},
            name="pay-and-book [malformed]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 400:
                resp.success()
            else:
                resp.failure(f"Expected 400, got {resp.status_code}")

    @tag("edge")
    @task
    def wrong_method(self):
        with self.client.get(
            "/occasion-pay-and-book", name="pay-and-book [GET]", catch_response=True
        ) as resp:
            if resp.status_code == 405:
                resp.success()
            else:
                resp.failure(f"Expected 405, got {resp.status_code}")
