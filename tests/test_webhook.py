import asyncio
import json
from datetime import date, timedelta

import pytest
from aiohttp.test_utils import TestClient, TestServer

from conftest import API_KEY, WEBHOOK_SECRET
from sepay_renewal.utils.crypto import sign_body
from sepay_renewal.utils.dates import today_vn
from sepay_renewal.webhook.sepay_webhook import create_webhook_app

WEBHOOK_PATH = "/api/payment/notify"


def _body(content: str, amount="100000.00", transaction_date="2024-05-01 10:22:00") -> bytes:
    return json.dumps({
        "transaction": {
            "transaction_content": content,
            "transaction_date": transaction_date,
            "amount_in": amount,
            "account_number": "0123456789",
        }
    }).encode()


def _signed(body: bytes) -> dict:
    return {"X-SEPAY-SIGNATURE": sign_body(body, WEBHOOK_SECRET), "Content-Type": "application/json"}


def _in_days(days: int) -> str:
    return (today_vn() + timedelta(days=days)).strftime("%Y/%m/%d")


@pytest.mark.asyncio
async def test_health_and_info_endpoints(service):
    async with TestClient(TestServer(create_webhook_app(service))) as client:
        resp = await client.get("/")
        assert resp.status == 200
        assert await resp.json() == {"status": "ok"}

        resp = await client.get(WEBHOOK_PATH)
        assert resp.status == 200
        assert "Use POST" in (await resp.json())["message"]


@pytest.mark.asyncio
async def test_invalid_signature_is_rejected_without_writes(service, store):
    store.add_order(id_order="MAVC1", order_expired=_in_days(2))
    body = _body("NGUYEN MAVC1")

    async with TestClient(TestServer(create_webhook_app(service))) as client:
        resp = await client.post(WEBHOOK_PATH, data=body, headers={"X-SEPAY-SIGNATURE": "00" * 32})
        assert resp.status == 403
        assert await resp.json() == {"message": "Invalid Signature"}

        resp = await client.post(WEBHOOK_PATH, data=body, headers={"Authorization": "Apikey wrong"})
        assert resp.status == 403

    assert store.writes == []


@pytest.mark.asyncio
async def test_missing_transaction_is_bad_request(service, store):
    async with TestClient(TestServer(create_webhook_app(service))) as client:
        for body in (b"not json", b"{}", json.dumps({"foo": "bar"}).encode()):
            resp = await client.post(WEBHOOK_PATH, data=body, headers=_signed(body))
            assert resp.status == 400
            assert await resp.json() == {"message": "Missing transaction"}

    assert store.writes == []


@pytest.mark.asyncio
async def test_payment_records_receipt_ledger_and_renews(service, store):
    store.add_product("Netflix--3m", pct_ctv=0.8)
    store.add_order(id_order="MAVC1", status="Cần Gia Hạn", cost=100000, order_expired=_in_days(2))
    body = _body("NGUYEN VAN A MAVC1")

    async with TestClient(TestServer(create_webhook_app(service))) as client:
        resp = await client.post(WEBHOOK_PATH, data=body, headers=_signed(body))
        assert resp.status == 200
        payload = await resp.json()

    assert payload["message"] == "OK"
    assert payload["renewal"]["success"] is True
    assert payload["renewal"]["process_type"] == "renewal"
    assert payload["renewal"]["details"]["price"] == 80000

    receipt = store.receipts[0]
    assert receipt['order_code'] == "MAVC1"
    assert receipt['sender'] == "NGUYEN"
    assert receipt['amount'] == 100000
    assert receipt['paid_date'] == date(2024, 5, 1)

    supplier_id = store.suppliers[0]['id']
    entries = store.supplier_entries(supplier_id)
    assert len(entries) == 1
    assert entries[0]['import'] == 100000
    assert entries[0]['round'] == "01/05/2024"

    row = store.order("MAVC1")
    assert row['status'] == "Chưa Thanh Toán"
    assert row['check_flag'] is False


@pytest.mark.asyncio
async def test_api_key_is_accepted_instead_of_signature(service, store):
    body = _body("SOMEONE DH42")

    async with TestClient(TestServer(create_webhook_app(service))) as client:
        resp = await client.post(WEBHOOK_PATH, data=body, headers={"X-API-KEY": API_KEY})
        assert resp.status == 200
        assert await resp.json() == {"message": "OK", "renewal": None}

    assert len(store.receipts) == 1
    assert store.ledger == []


@pytest.mark.asyncio
async def test_receipt_failure_is_internal_error(service, store):
    store.fail_on.add("payment_receipt.insert")
    store.add_order(id_order="MAVC1", order_expired=_in_days(2))
    body = _body("A MAVC1")

    async with TestClient(TestServer(create_webhook_app(service))) as client:
        resp = await client.post(WEBHOOK_PATH, data=body, headers=_signed(body))
        assert resp.status == 500
        assert await resp.json() == {"message": "Internal Error"}

    assert store.ledger == []
    assert store.order("MAVC1")['check_flag'] is None


@pytest.mark.asyncio
async def test_ledger_failure_does_not_change_response(service, store):
    store.fail_on.add("payment_supply.select")
    store.add_order(id_order="MAVC1", status="Cần Gia Hạn", order_expired=_in_days(1))
    body = _body("A MAVC1")

    async with TestClient(TestServer(create_webhook_app(service))) as client:
        resp = await client.post(WEBHOOK_PATH, data=body, headers=_signed(body))
        assert resp.status == 200
        payload = await resp.json()

    assert payload["renewal"]["success"] is True
    assert len(store.receipts) == 1


@pytest.mark.asyncio
async def test_prepaid_order_is_force_renewed_and_reopened(service, store):
    store.add_order(id_order="MAVC1", status="Đã Thanh Toán", check_flag=True, order_expired=_in_days(20))
    body = _body("A MAVC1")

    async with TestClient(TestServer(create_webhook_app(service))) as client:
        resp = await client.post(WEBHOOK_PATH, data=body, headers=_signed(body))
        payload = await resp.json()

    assert payload["renewal"]["success"] is True
    row = store.order("MAVC1")
    assert row['status'] == "Chưa Thanh Toán"
    assert row['check_flag'] is False


@pytest.mark.asyncio
async def test_duplicate_deliveries_renew_order_once(service, store):
    store.add_product("Netflix--3m")
    store.add_supplier("Nguon A")
    store.add_order(id_order="MAVC1", status="Cần Gia Hạn", order_expired=_in_days(2))
    body = _body("A MAVC1")

    async with TestClient(TestServer(create_webhook_app(service))) as client:
        responses = await asyncio.gather(
            client.post(WEBHOOK_PATH, data=body, headers=_signed(body)),
            client.post(WEBHOOK_PATH, data=body, headers=_signed(body)),
        )
        payloads = [await resp.json() for resp in responses]

    assert [resp.status for resp in responses] == [200, 200]
    renewals = [p["renewal"] for p in payloads if p["renewal"]]
    assert [r["process_type"] for r in renewals].count("renewal") == 1
    assert len(store.receipts) == 2
    assert len(store.supply_prices) == 1
    assert store.writes.count(("order_list", "renew")) == 1
    assert store.order("MAVC1")['order_expired'] == _in_days(93)


@pytest.mark.asyncio
async def test_renewal_retry_requires_api_key(service, store):
    async with TestClient(TestServer(create_webhook_app(service))) as client:
        body = json.dumps({"orders": ["MAVC1"]}).encode()
        resp = await client.post("/api/renewals/retry", data=body, headers=_signed(body))
        assert resp.status == 403
        assert await resp.json() == {"message": "Invalid API key"}

    assert store.writes == []


@pytest.mark.asyncio
async def test_renewal_retry_forces_listed_orders(service, store):
    store.add_order(id_order="MAVC1", status="Chưa Thanh Toán", check_flag=False, order_expired=_in_days(30))

    async with TestClient(TestServer(create_webhook_app(service))) as client:
        resp = await client.post(
            "/api/renewals/retry",
            json={"orders": ["MAVC1", "MAVC404"], "force": True},
            headers={"Authorization": f"Apikey {API_KEY}"},
        )
        assert resp.status == 200
        payload = await resp.json()

    assert payload["total"] == 2
    assert payload["succeeded"] == 1
    assert payload["failed"] == 1
    assert payload["results"][0]["order_code"] == "MAVC1"
    assert payload["results"][0]["action"] == "force_renew"
