from decimal import Decimal

import pytest

from .factories import minutes


@pytest.fixture
async def accepted_order(seeder):
    for name in ("w1", "w2"):
        await seeder.worker(name)
    await seeder.order("o1", ordered_hours=Decimal("10"))
    await seeder.round("o1", 1, ["w1", "w2"])
    return "o1"


async def test_settle_round_endpoint(accepted_order, client):
    response = await client.post(
        "/api/settlements/rounds/o1-r1/settle",
        json={"outcome": "COMPLETE", "at": minutes(90).isoformat(), "operator_id": "admin"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["outcome"] == "COMPLETE"
    assert body["unlock_at"] is not None
    assert sorted(r["final_cents"] for r in body["records"]) == [50000, 50000]

    conflict = await client.post("/api/settlements/rounds/o1-r1/settle", json={"outcome": "COMPLETE"})
    assert conflict.status_code == 409
    assert conflict.json()["code"] == "CONFLICT"


async def test_settle_unknown_round_is_404(client):
    response = await client.post("/api/settlements/rounds/missing/settle", json={"outcome": "ARCHIVE"})
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


async def test_invalid_outcome_is_rejected(accepted_order, client):
    response = await client.post("/api/settlements/rounds/o1-r1/settle", json={"outcome": "CANCEL"})
    assert response.status_code == 422


async def test_wallet_endpoints(accepted_order, client):
    await client.post(
        "/api/settlements/rounds/o1-r1/settle",
        json={"outcome": "COMPLETE", "at": minutes(90).isoformat()},
    )

    account = await client.get("/api/wallets/w1")
    assert account.status_code == 200
    assert account.json()["frozen_cents"] == 50000
    assert account.json()["total_cents"] == 50000

    transactions = await client.get("/api/wallets/w1/transactions")
    assert [tx["biz_type"] for tx in transactions.json()["transactions"]] == ["SETTLEMENT_EARNING"]

    holds = await client.get("/api/wallets/w1/holds", params={"status": "FROZEN"})
    assert [hold["amount_cents"] for hold in holds.json()["holds"]] == [50000]

    reconcile = await client.get("/api/wallets/w1/reconcile")
    assert reconcile.json()["is_balanced"] is True

    released = await client.post("/api/wallets/holds/release", json={"batch_size": 10})
    assert released.status_code == 200
    assert released.json()["released"] == 2
    assert (await client.get("/api/wallets/w1")).json()["available_cents"] == 50000
    assert (await client.get("/api/wallets/w1/reconcile")).json()["is_balanced"] is True

    missing = await client.get("/api/wallets/nobody")
    assert missing.status_code == 404


async def test_preview_and_repair_endpoints(accepted_order, client):
    await client.post(
        "/api/settlements/rounds/o1-r1/settle",
        json={"outcome": "COMPLETE", "at": minutes(90).isoformat()},
    )

    preview = await client.get("/api/settlements/orders/o1/preview")
    assert preview.status_code == 200
    body = preview.json()
    assert body["summary"]["platform_net_cents"] == 0
    assert all(item["delta_cents"] == 0 for plan in body["rounds"] for item in plan["items"])

    repair = await client.post(
        "/api/settlements/orders/o1/repair",
        json={"preview_id": body["preview_id"], "operator_id": "admin"},
    )
    assert repair.status_code == 200
    assert repair.json()["updated_count"] == 2
    assert repair.json()["rollback_deltas"]["w1"] == {"available_cents": 0, "frozen_cents": -50000}

    unknown = await client.post("/api/settlements/orders/missing/repair")
    assert unknown.status_code == 404
