"""
Locust Load Test Suite

Tokens are minted locally with the server's SECRET_KEY (same .env), standing
in for the wallet layer.

Run scenarios:
  locust -f locustfile.py --tags race       # Last-seat race, no overselling
  locust -f locustfile.py --tags read       # Read throughput
  locust -f locustfile.py --tags edge       # Bad payments and bad input
  locust -f locustfile.py                   # All tests
"""

import random
import uuid

import requests

from locust import HttpUser, task, between, tag, events

from ticket_ledger.core.security import create_access_token

RACE_CAPACITY = 10
RACE_PRICE = 25

# Shared state
EVENT_IDS = []
RACE_EVENT_ID = None


def account_headers(account: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': account})}"}


def new_account() -> str:
    return f"load-{uuid.uuid4().hex[:12]}"


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Setup: one small event every RaceUser fights over."""
    global RACE_EVENT_ID
    if environment.host is None:
        return

    resp = requests.post(
        f"{environment.host}/api/v1/events/",
        json={
            "name": "Race Test Event",
            "price": RACE_PRICE,
            "total_tickets": RACE_CAPACITY,
            "metadata_cid": "QmRaceTestEvent",
        },
        headers=account_headers("load-organizer"),
        timeout=10,
    )
    if resp.status_code == 201:
        RACE_EVENT_ID = resp.json()["id"]
        EVENT_IDS.append(RACE_EVENT_ID)
        print(f"\nCreated race event {RACE_EVENT_ID} with {RACE_CAPACITY} tickets\n")


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Report whether the race event was oversold."""
    if environment.host is None or RACE_EVENT_ID is None:
        return

    event = requests.get(f"{environment.host}/api/v1/events/{RACE_EVENT_ID}", timeout=10).json()
    sold = event["tickets_sold"]
    print(f"\nRace event: sold={sold}/{RACE_CAPACITY} escrow={event['escrowed_balance']}")
    if sold > RACE_CAPACITY or event["escrowed_balance"] != sold * RACE_PRICE:
        print("OVERSOLD OR ESCROW MISMATCH")


class RaceUser(HttpUser):
    """
    TEST 1: Concurrency - many buyers, 10 tickets

    Run: locust -f locustfile.py --tags race -u 100 -r 50 --run-time 30s

    Exactly 10 purchases may succeed; the rest must see 409 SOLD_OUT.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = account_headers(new_account())

    @tag("race")
    @task
    def buy_last_tickets(self):
        if RACE_EVENT_ID is None:
            return

        with self.client.post("/api/v1/tickets/",
            json={"event_id": RACE_EVENT_ID, "payment_amount": RACE_PRICE},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ReadUser(HttpUser):
    """
    TEST 2: Read throughput

    Run: locust -f locustfile.py --tags read -u 100 -r 20 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    @tag("read")
    @task(10)
    def list_events(self):
        page = random.randint(1, 5)
        self.client.get(f"/api/v1/events/?page={page}&page_size=20", name="/api/v1/events/")

    @tag("read")
    @task(3)
    def get_event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @tag("read")
    @task(2)
    def poll_notifications(self):
        self.client.get("/api/v1/notifications/?limit=50", name="/api/v1/notifications/")

    @tag("read")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    Every request must be rejected with the documented status and leave
    the ledger untouched.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = account_headers(new_account())

    def _expect(self, resp, *codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        with self.client.post("/api/v1/tickets/",
            json={"event_id": 999999, "payment_amount": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, 404)

    @tag("edge")
    @task
    def overpayment(self):
        if RACE_EVENT_ID is None:
            return
        with self.client.post("/api/v1/tickets/",
            json={"event_id": RACE_EVENT_ID, "payment_amount": RACE_PRICE + 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            # 409 once the race event is sold out
            self._expect(resp, 402, 409)

    @tag("edge")
    @task
    def zero_capacity_event(self):
        with self.client.post("/api/v1/events/",
            json={"name": "Nothing", "price": 1, "total_tickets": 0, "metadata_cid": "QmNothing"},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, 422)

    @tag("edge")
    @task
    def refund_foreign_ticket(self):
        with self.client.post("/api/v1/tickets/0/refund",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, 403, 404)

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/tickets/",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, 422)

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/tickets/",
            json={"event_id": 0, "payment_amount": 1},
            catch_response=True,
        ) as resp:
            self._expect(resp, 401)


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.account = new_account()
        self.headers = account_headers(self.account)
        self.ticket_ids = []

    @task(50)
    def browse_events(self):
        resp = self.client.get("/api/v1/events/?page=1&page_size=20")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @task(20)
    def view_event(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @task(10)
    def buy_ticket(self):
        if not EVENT_IDS:
            return
        event = self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")
        if event.status_code != 200:
            return
        data = event.json()
        with self.client.post("/api/v1/tickets/",
            json={"event_id": data["id"], "payment_amount": data["price"]},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                self.ticket_ids.append(resp.json()["id"])
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # sold out or closed

    @task(3)
    def cancel_ticket(self):
        if self.ticket_ids:
            ticket_id = self.ticket_ids.pop()
            with self.client.post(f"/api/v1/tickets/{ticket_id}/cancel",
                headers=self.headers,
                name="/api/v1/tickets/{id}/cancel",
                catch_response=True,
            ) as resp:
                if resp.status_code in (200, 409):
                    resp.success()

    @task(3)
    def create_event(self):
        resp = self.client.post("/api/v1/events/",
            json={
                "name": f"Event {random.randint(1, 10000)}",
                "price": random.randint(0, 100),
                "total_tickets": random.randint(10, 500),
                "metadata_cid": f"Qm{uuid.uuid4().hex}",
            },
            headers=self.headers)
        if resp.status_code == 201:
            EVENT_IDS.append(resp.json()["id"])
