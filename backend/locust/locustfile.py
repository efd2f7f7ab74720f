"""
Locust Load Test Suite

Tokens are issued by the identity service, so the scenarios read them from the
environment instead of registering users:

  LOAD_TOKENS      comma-separated bearer tokens (one per simulated player)
  LOAD_VENUE_ID    venue to book
  LOAD_SPORT_ID    sport offered at the venue

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test double booking
  locust -f locustfile.py --tags throughput   # Test venue summary cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import itertools
import os
import random
from datetime import date, timedelta

from locust import HttpUser, task, between, tag, events

TOKENS = [t for t in os.environ.get("LOAD_TOKENS", "").split(",") if t]
VENUE_ID = int(os.environ.get("LOAD_VENUE_ID", "1"))
SPORT_ID = int(os.environ.get("LOAD_SPORT_ID", "1"))

# Every ConcurrencyUser fights for this exact court/day/window
CONTESTED_DAY = (date.today() + timedelta(days=30)).isoformat()
CONTESTED_COURT = f"load-{random.randint(1000, 9999)}"

_token_cycle = itertools.cycle(TOKENS) if TOKENS else None
_outcomes = {"created": 0, "conflict": 0}


def next_headers() -> dict:
    if not _token_cycle:
        return {}
    return {"Authorization": f"Bearer {next(_token_cycle)}"}


def booking_payload(court: str, day: str, start: str, end: str) -> dict:
    return {
        "venue_id": VENUE_ID,
        "court": court,
        "sport_id": SPORT_ID,
        "date": day,
        "time_slot": {"start": start, "end": end},
        "total_price": 40.0,
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: contested slot {CONTESTED_COURT} on {CONTESTED_DAY} 18:00-19:00")
    print(f"       {len(TOKENS)} tokens, venue {VENUE_ID}, sport {SPORT_ID}")
    print("=" * 60)


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"RESULT: {_outcomes['created']} created, {_outcomes['conflict']} rejected with 409")
    if _outcomes["created"] > 1:
        print("FAIL: the contested slot was booked more than once")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - N players, one court slot

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    Exactly one request may get 201, every other one 409. After the test, verify:
      SELECT COUNT(*) FROM bookings
      WHERE court = '<court>' AND date = '<day>' AND status <> 'cancelled';
    Should be 1
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = next_headers()

    @tag("concurrency")
    @task(3)
    def book_contested_slot(self):
        """All users fight for the same window."""
        if not self.headers:
            return

        with self.client.post("/api/v1/bookings/",
            json=booking_payload(CONTESTED_COURT, CONTESTED_DAY, "18:00", "19:00"),
            headers=self.headers,
            name="/api/v1/bookings/ [contested]",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                _outcomes["created"] += 1
                resp.success()
            elif resp.status_code == 409:
                _outcomes["conflict"] += 1
                resp.success()  # Expected: slot taken
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("concurrency")
    @task(1)
    def book_overlapping_window(self):
        """Overlapping (not identical) window on the contested court; must never be admitted alongside it."""
        if not self.headers:
            return

        with self.client.post("/api/v1/bookings/",
            json=booking_payload(CONTESTED_COURT, CONTESTED_DAY, "18:30", "19:30"),
            headers=self.headers,
            name="/api/v1/bookings/ [overlap]",
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def venue_summary_cached(self):
        """Hammer the cached endpoint."""
        self.client.get(f"/api/v1/venues/{VENUE_ID}", name="/api/v1/venues/{id} [cached]")

    @tag("throughput", "read")
    @task(3)
    def venue_ratings(self):
        self.client.get(f"/api/v1/ratings/venue/{VENUE_ID}", name="/api/v1/ratings/venue/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        """Monitor system health."""
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = next_headers()

    def _expect(self, payload, expected, name):
        with self.client.post("/api/v1/bookings/",
            json=payload,
            headers=self.headers,
            name=name,
            catch_response=True
        ) as resp:
            if resp.status_code in expected:
                resp.success()
            else:
                resp.failure(f"Expected {expected}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_venue_id(self):
        """Book at a non-existent venue."""
        payload = booking_payload("C1", CONTESTED_DAY, "10:00", "11:00")
        payload["venue_id"] = 999999
        self._expect(payload, [404], "edge: unknown venue")

    @tag("edge")
    @task
    def reversed_window(self):
        self._expect(booking_payload("C1", CONTESTED_DAY, "11:00", "10:00"), [400], "edge: reversed window")

    @tag("edge")
    @task
    def malformed_clock(self):
        self._expect(booking_payload("C1", CONTESTED_DAY, "25:00", "26:00"), [400], "edge: bad clock")

    @tag("edge")
    @task
    def past_date(self):
        yesterday = (date.today() - timedelta(days=2)).isoformat()
        self._expect(booking_payload("C1", yesterday, "10:00", "11:00"), [400], "edge: past date")

    @tag("edge")
    @task
    def negative_price(self):
        payload = booking_payload("C1", CONTESTED_DAY, "10:00", "11:00")
        payload["total_price"] = -5
        self._expect(payload, [400], "edge: negative price")

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_auth(self):
        """Try booking without auth."""
        with self.client.post("/api/v1/bookings/",
            json=booking_payload("C1", CONTESTED_DAY, "10:00", "11:00"),
            catch_response=True
        ) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing (80%)
      - Some bookings (15%)
      - Rare cancellations (5%)
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = next_headers()
        self.booking_ids = []

    @task(50)
    def browse_venue(self):
        self.client.get(f"/api/v1/venues/{VENUE_ID}")

    @task(20)
    def my_bookings(self):
        if self.headers:
            self.client.get("/api/v1/bookings/me", headers=self.headers)

    @task(10)
    def book_random_slot(self):
        """Occasional booking on a random court and hour; 409s are normal."""
        if not self.headers:
            return
        day = (date.today() + timedelta(days=random.randint(1, 60))).isoformat()
        hour = random.randint(6, 21)
        with self.client.post("/api/v1/bookings/",
            json=booking_payload(f"C{random.randint(1, 6)}", day, f"{hour:02d}:00", f"{hour + 1:02d}:00"),
            headers=self.headers,
            name="/api/v1/bookings/ [random]",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                self.booking_ids.append(resp.json()["id"])
                resp.success()
            elif resp.status_code == 409:
                resp.success()

    @task(3)
    def cancel_booking(self):
        if self.booking_ids and self.headers:
            booking_id = self.booking_ids.pop()
            self.client.delete(f"/api/v1/bookings/{booking_id}", headers=self.headers,
                name="/api/v1/bookings/{id}")
