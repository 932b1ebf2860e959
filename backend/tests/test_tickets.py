"""
Tests for ticket endpoints: purchase, transfer, cancellation, refunds, redemption.
"""

import pytest
from httpx import AsyncClient

from tests.conftest import ALICE, BOB


async def _buy(client: AsyncClient, event_id: int, headers: dict, amount: int = 50):
    return await client.post(
        "/api/v1/tickets/",
        json={"event_id": event_id, "payment_amount": amount},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_buy_ticket(client: AsyncClient, test_event, alice_headers):
    """Successful purchase mints a ticket and decrements availability."""
    response = await _buy(client, test_event["id"], alice_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["id"] == 0
    assert data["owner"] == ALICE
    assert data["is_used"] is False

    event = (await client.get(f"/api/v1/events/{test_event['id']}")).json()
    assert event["available_tickets"] == 1
    assert event["escrowed_balance"] == 50


@pytest.mark.asyncio
async def test_buy_ticket_unauthenticated(client: AsyncClient, test_event):
    response = await client.post(
        "/api/v1/tickets/", json={"event_id": test_event["id"], "payment_amount": 50}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [49, 51])
async def test_buy_ticket_wrong_payment(client: AsyncClient, test_event, alice_headers, amount):
    """Over- and under-payment both return 402 and record nothing."""
    response = await _buy(client, test_event["id"], alice_headers, amount)
    assert response.status_code == 402
    assert response.json()["error"]["code"] == "INSUFFICIENT_PAYMENT"

    assert (await client.get("/api/v1/tickets/count")).json() == {"count": 0}
    event = (await client.get(f"/api/v1/events/{test_event['id']}")).json()
    assert event["available_tickets"] == 2


@pytest.mark.asyncio
async def test_buy_ticket_sold_out(client: AsyncClient, test_event, alice_headers, bob_headers):
    assert (await _buy(client, test_event["id"], alice_headers)).status_code == 201
    assert (await _buy(client, test_event["id"], bob_headers)).status_code == 201

    response = await _buy(client, test_event["id"], alice_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "SOLD_OUT"


@pytest.mark.asyncio
async def test_buy_ticket_unknown_event(client: AsyncClient, alice_headers):
    response = await _buy(client, 404, alice_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_my_tickets(client: AsyncClient, test_event, alice_headers):
    await _buy(client, test_event["id"], alice_headers)
    await _buy(client, test_event["id"], alice_headers)

    response = await client.get("/api/v1/tickets/mine", headers=alice_headers)
    assert response.status_code == 200
    assert response.json() == {"owner": ALICE, "ticket_ids": [0, 1]}

    response = await client.get(f"/api/v1/accounts/{BOB}/tickets")
    assert response.json()["ticket_ids"] == []


@pytest.mark.asyncio
async def test_transfer_then_cancel(client: AsyncClient, test_event, alice_headers, bob_headers):
    """After a transfer only the new holder can cancel."""
    ticket_id = (await _buy(client, test_event["id"], alice_headers)).json()["id"]

    response = await client.post(
        f"/api/v1/tickets/{ticket_id}/transfer", json={"new_owner": BOB}, headers=alice_headers
    )
    assert response.status_code == 200
    assert response.json()["owner"] == BOB

    response = await client.post(f"/api/v1/tickets/{ticket_id}/cancel", headers=alice_headers)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "NOT_TICKET_OWNER"

    response = await client.post(f"/api/v1/tickets/{ticket_id}/cancel", headers=bob_headers)
    assert response.status_code == 200
    assert response.json()["amount"] == 50

    event = (await client.get(f"/api/v1/events/{test_event['id']}")).json()
    assert event["available_tickets"] == 2
    assert event["escrowed_balance"] == 0


@pytest.mark.asyncio
async def test_refund_after_event_cancelled(client: AsyncClient, test_event, organizer_headers, alice_headers):
    ticket_id = (await _buy(client, test_event["id"], alice_headers)).json()["id"]

    response = await client.post(f"/api/v1/tickets/{ticket_id}/refund", headers=alice_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "EVENT_NOT_CANCELLED"

    await client.post(f"/api/v1/events/{test_event['id']}/cancel", headers=organizer_headers)

    response = await client.post(f"/api/v1/tickets/{ticket_id}/refund", headers=alice_headers)
    assert response.status_code == 200
    assert response.json()["amount"] == 50

    response = await client.post(f"/api/v1/tickets/{ticket_id}/refund", headers=alice_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "TICKET_REFUNDED"


@pytest.mark.asyncio
async def test_use_ticket(client: AsyncClient, test_event, organizer_headers, alice_headers):
    ticket_id = (await _buy(client, test_event["id"], alice_headers)).json()["id"]

    response = await client.post(f"/api/v1/tickets/{ticket_id}/use", headers=alice_headers)
    assert response.status_code == 403

    response = await client.post(f"/api/v1/tickets/{ticket_id}/use", headers=organizer_headers)
    assert response.status_code == 200
    assert response.json()["is_used"] is True

    response = await client.post(f"/api/v1/tickets/{ticket_id}/cancel", headers=alice_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "TICKET_USED"


@pytest.mark.asyncio
async def test_get_ticket_not_found(client: AsyncClient):
    response = await client.get("/api/v1/tickets/7")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TICKET_NOT_FOUND"
