from datetime import timedelta

from sqlalchemy import select

from hotspot_billing.models import Transaction
from hotspot_billing.models.enums import TransactionStatus
from tests.conftest import add_plan, stk_callback

PHONE = "254712345678"


async def _seed_plans(session_factory):
    async with session_factory() as db:
        day = await add_plan(db, 50, timedelta(days=1), "1day", rate_limit="2M/2M")
        hour = await add_plan(db, 10, timedelta(hours=1), "1hour")
        await add_plan(db, 5, timedelta(minutes=30), "retired", active=False)
    return day, hour


async def _transactions(session_factory):
    async with session_factory() as db:
        result = await db.execute(select(Transaction).order_by(Transaction.id))
        return list(result.scalars().all())


async def test_list_plans_cheapest_first(client, session_factory):
    await _seed_plans(session_factory)

    response = await client.get("/plans")

    assert response.status_code == 200
    body = response.json()
    assert [plan["profile_name"] for plan in body] == ["1hour", "1day"]
    assert body[0]["duration"] == "1 hour"
    assert body[1]["duration"] == "1 day"
    assert body[1]["rate_limit"] == "2M/2M"


async def test_pay_rejects_bad_phone(client, session_factory):
    day, _ = await _seed_plans(session_factory)

    for phone in ["0712345678", "+254712345678", "25471234567", "", None]:
        response = await client.post("/pay", json={"phone": phone, "plan_id": day.id})
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid phone number"}

    assert await _transactions(session_factory) == []


async def test_pay_rejects_unknown_or_inactive_plan(client, session_factory):
    await _seed_plans(session_factory)

    for plan_id in [999, 3, None]:
        response = await client.post("/pay", json={"phone": PHONE, "plan_id": plan_id})
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid plan"}


async def test_pay_rejects_malformed_body(client):
    response = await client.post("/pay", json={"phone": PHONE, "plan_id": "one"})

    assert response.status_code == 400
    assert response.json()["success"] is False


async def test_pay_starts_stk_push(client, session_factory, daraja):
    day, _ = await _seed_plans(session_factory)

    response = await client.post("/pay", json={"phone": PHONE, "plan_id": day.id})

    assert response.status_code == 200
    assert response.json() == {"success": True, "checkoutId": "ws_CO_0001"}
    (transaction,) = await _transactions(session_factory)
    assert transaction.status is TransactionStatus.PENDING
    assert transaction.amount == 50
    assert transaction.plan_id == day.id
    assert transaction.mpesa_request_id == "ws_CO_0001"


async def test_pay_gateway_failure(client, session_factory, daraja):
    day, _ = await _seed_plans(session_factory)
    daraja.fail_push = True

    response = await client.post("/pay", json={"phone": PHONE, "plan_id": day.id})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Payment initiation failed"}
    (transaction,) = await _transactions(session_factory)
    assert transaction.status is TransactionStatus.PENDING
    assert transaction.mpesa_request_id is None


async def test_pay_then_callback_grants_access(client, session_factory, fake_api):
    day, _ = await _seed_plans(session_factory)

    pay = await client.post("/pay", json={"phone": PHONE, "plan_id": day.id})
    checkout_id = pay.json()["checkoutId"]

    before = await client.get(f"/validate-user/{PHONE}")
    assert before.json() == {"phone": PHONE, "active": False, "active_until": None}

    callback = await client.post("/callback", json=stk_callback(checkout_id))
    assert callback.status_code == 200
    assert callback.json() == {"message": "Callback processed"}

    (transaction,) = await _transactions(session_factory)
    assert transaction.status is TransactionStatus.SUCCESS
    assert fake_api.users[PHONE] == {"name": PHONE, "password": PHONE, "profile": "1day"}

    after = await client.get(f"/validate-user/{PHONE}")
    assert after.status_code == 200
    assert after.json()["active"] is True
    assert after.json()["active_until"] is not None

    again = await client.post("/callback", json=stk_callback(checkout_id))
    assert again.status_code == 200
    assert again.json() == {"message": "Callback already processed"}


async def test_callback_for_unknown_checkout_id(client):
    response = await client.post("/callback", json=stk_callback("ws_CO_unknown"))

    assert response.status_code == 200
    assert response.json() == {"message": "Transaction not found"}


async def test_callback_rejects_invalid_bodies(client):
    not_json = await client.post(
        "/callback", content=b"not json", headers={"Content-Type": "application/json"}
    )
    assert not_json.status_code == 400
    assert not_json.text == "Invalid callback"

    missing = await client.post("/callback", json={"Body": {}})
    assert missing.status_code == 400
    assert missing.text == "Invalid callback"


async def test_health(client, manager):
    live = await client.get("/health/live")
    assert live.json() == {"alive": True}

    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["database"] == "healthy"
    assert health.json()["router"] == "disconnected"
