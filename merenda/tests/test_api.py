from decimal import Decimal


def _place(client, contract, unit, item, quantity):
    return client.post(
        "/v1/orders",
        json={
            "contract_id": contract.id,
            "expected_delivery_at": "2026-03-10",
            "lines": [{"unit_id": unit.id, "contract_item_id": item.id, "quantity": quantity}],
        },
    )


def test_health(client):
    resp = client.get("/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


def test_delivery_round_trip(client, contract, rice, school_unit):
    # ---------- order ----------
    resp = _place(client, contract, school_unit, rice, 10)
    assert resp.status_code == 201, resp.text
    order = resp.json()
    assert order["number"].startswith("PD-")
    assert order["status"] == "PENDING"
    assert Decimal(order["total_value"]) == Decimal("50")

    assert [o["id"] for o in client.get("/v1/orders").json()] == [order["id"]]
    assert client.get(f"/v1/orders/{order['id']}").json()["lines"][0]["quantity_ordered"] == 10

    # ---------- receipts ----------
    resp = client.post(f"/v1/orders/{order['id']}/receipts", json={"delivery_date": "2026-03-10"})
    assert resp.status_code == 201, resp.text
    (receipt,) = resp.json()
    assert receipt["status"] == "PENDING"
    assert f"/confirmacao-recebimento/{receipt['id']}?token=" in receipt["confirmation_url"]
    token = receipt["confirmation_url"].rsplit("token=", 1)[1]

    resp = client.post(f"/v1/orders/{order['id']}/receipts", json={"delivery_date": "2026-03-10"})
    assert resp.status_code == 409
    assert resp.json()["code"] == "ALREADY_PROCESSED"

    # ---------- confirmation ----------
    payload = {
        "received_by": "Diretora",
        "token": token,
        "lines": [
            {
                "receipt_line_id": receipt["lines"][0]["id"],
                "conforming": False,
                "quantity_received": 7,
                "photos": ["https://files.example/a.jpg"],
            }
        ],
    }
    resp = client.post(f"/v1/receipts/{receipt['id']}/confirm", json=payload)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "PARTIAL"
    assert body["pool"] == "SCHOOL"
    assert body["returned_to_contract"] == {str(rice.id): 3}

    resp = client.post(f"/v1/receipts/{receipt['id']}/confirm", json=payload)
    assert resp.status_code == 409
    assert resp.json()["code"] == "ALREADY_PROCESSED"

    assert client.get(f"/v1/orders/{order['id']}/consolidation").json()["status"] == "PARTIAL"

    # ---------- adjustment ----------
    resp = client.post(
        f"/v1/receipts/{receipt['id']}/adjust",
        json={
            "responsible": "Nutricionista",
            "lines": [{"receipt_line_id": receipt["lines"][0]["id"], "quantity_received": 9}],
        },
    )
    assert resp.status_code == 201, resp.text
    complementary = resp.json()
    assert complementary["original_receipt_id"] == receipt["id"]
    assert complementary["lines"][0]["quantity_requested"] == 1

    chain = client.get(f"/v1/receipts/{complementary['id']}/chain").json()
    assert [r["id"] for r in chain] == [receipt["id"], complementary["id"]]
    assert chain[0]["status"] == "ADJUSTED"

    consolidation = client.get(f"/v1/orders/{order['id']}/consolidation").json()
    assert consolidation["status"] == "ADJUSTED"


def test_order_errors(client, contract, rice, daycare_unit):
    resp = _place(client, contract, daycare_unit, rice, 101)
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "INSUFFICIENT_BALANCE"
    assert body["available"] == 100
    assert body["pool"] == "DAYCARE"

    assert _place(client, contract, daycare_unit, rice, 0).status_code == 422
    assert client.get("/v1/orders/999").status_code == 404
    assert client.get("/v1/receipts/999").json()["code"] == "NOT_FOUND"


def test_stock_endpoints(client, contract, rice, school_unit):
    order = _place(client, contract, school_unit, rice, 10).json()
    (receipt,) = client.post(f"/v1/orders/{order['id']}/receipts", json={"delivery_date": "2026-03-10"}).json()
    client.post(
        f"/v1/receipts/{receipt['id']}/confirm",
        json={
            "received_by": "Diretora",
            "lines": [{"receipt_line_id": receipt["lines"][0]["id"], "conforming": True, "quantity_received": 10}],
        },
    )

    (entry,) = client.get("/v1/stock", params={"unit_id": school_unit.id}).json()
    assert entry["current_quantity"] == 10
    assert entry["pool"] == "SCHOOL"

    movement = {
        "stock_entry_id": entry["id"],
        "kind": "OUT",
        "quantity": 11,
        "reason": "consumo",
        "performed_by": "Almoxarife",
    }
    resp = client.post("/v1/stock-movements", json=movement)
    assert resp.status_code == 400
    assert resp.json()["code"] == "INSUFFICIENT_STOCK"

    resp = client.post("/v1/stock-movements", json={**movement, "quantity": 4})
    assert resp.status_code == 201, resp.text
    (mv,) = resp.json()
    assert (mv["quantity_before"], mv["quantity_after"]) == (10, 6)

    resp = client.post("/v1/stock-movements", json={**movement, "kind": "DISPOSE", "quantity": 1})
    assert resp.status_code == 400
    assert resp.json()["code"] == "MISSING_EVIDENCE"

    history = client.get("/v1/stock-movements", params={"stock_entry_id": entry["id"]}).json()
    assert [h["kind"] for h in history] == ["IN", "OUT"]

    resp = client.patch(f"/v1/stock/{entry['id']}/minimum", json={"minimum_quantity": 6})
    assert resp.status_code == 200
    assert resp.json()["minimum_quantity"] == 6

    low = client.get("/v1/stock", params={"below_minimum": True}).json()
    assert [e["id"] for e in low] == [entry["id"]]
