API = "/api"


def _product(client, code, list_price, partner_price):
    resp = client.post(
        f"{API}/products",
        json={
            "code": code,
            "name": f"Product {code}",
            "list_price": list_price,
            "partner_price": partner_price,
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _proposal(client, **payload):
    body = {"number": "P-2025-001", "customer_name": "Acme"}
    body.update(payload)
    resp = client.post(f"{API}/proposals", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _seed_priced_proposal(client):
    a = _product(client, "A", 200, 100)
    b = _product(client, "B", 400, 200)
    c = _product(client, "C", 500, 300)
    proposal = _proposal(client)
    pid = proposal["id"]

    for product, taxable in ((a, True), (b, False), (c, True)):
        resp = client.post(
            f"{API}/proposals/{pid}/items",
            json={"product_id": product["id"], "quantity": 1, "apply_custom_tax": taxable},
        )
        assert resp.status_code == 201, resp.text

    resp = client.post(f"{API}/proposals/{pid}/taxes", json={"name": "Eco fee", "rate": 10})
    assert resp.status_code == 201, resp.text
    resp = client.post(
        f"{API}/proposals/{pid}/engineering",
        json={"description": "Commissioning", "days": 2, "rate": 500},
    )
    assert resp.status_code == 201, resp.text
    resp = client.post(
        f"{API}/proposals/{pid}/expenses", json={"description": "Travel", "amount": 60}
    )
    assert resp.status_code == 201, resp.text
    return pid


def test_health(client):
    resp = client.get(f"{API}/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_create_and_get_proposal(client):
    created = _proposal(client)

    assert created["status"] == "Draft"
    assert created["total_amount"] == 0
    assert created["items"] == []

    resp = client.get(f"{API}/proposals/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["customer_name"] == "Acme"


def test_missing_proposal_is_404(client):
    assert client.get(f"{API}/proposals/999").status_code == 404
    assert client.get(f"{API}/proposals/999/financials").status_code == 404


def test_financials_after_mutations(client):
    pid = _seed_priced_proposal(client)

    resp = client.get(f"{API}/proposals/{pid}/financials")
    assert resp.status_code == 200
    body = resp.json()

    assert body["subtotal_products"] == 1100
    assert body["subtotal_engineering"] == 1000
    assert body["subtotal_expenses"] == 60
    assert body["taxable_products_amount"] == 400
    assert body["subtotal_taxes"] == 40
    assert body["total_amount"] == 2200
    assert body["partner_cost"] == 600
    assert body["total_cost"] == 700
    assert body["gross_profit"] == 1500
    assert body["profit_margin"] == 68.18
    assert body["taxes"][0]["amount"] == 40

    detail = client.get(f"{API}/proposals/{pid}").json()
    assert detail["total_amount"] == 2200
    assert detail["taxes"][0]["amount"] == 40
    assert detail["engineering"][0]["amount"] == 1000


def test_removing_taxable_item_updates_tax_and_total(client):
    pid = _seed_priced_proposal(client)
    detail = client.get(f"{API}/proposals/{pid}").json()
    first_item = detail["items"][0]

    resp = client.delete(f"{API}/proposals/{pid}/items/{first_item['id']}")
    assert resp.status_code == 204

    detail = client.get(f"{API}/proposals/{pid}").json()
    # 900 products + 1000 engineering + 60 expenses + 30 tax
    assert detail["total_amount"] == 1990
    assert detail["taxes"][0]["amount"] == 30


def test_tax_rows_add_up_to_tax_subtotal_and_total(client):
    product = _product(client, "R", 100.05, 100.05)
    pid = _proposal(client)["id"]
    resp = client.post(
        f"{API}/proposals/{pid}/items",
        json={"product_id": product["id"], "quantity": 1, "apply_custom_tax": True},
    )
    assert resp.status_code == 201, resp.text
    for name in ("T1", "T2"):
        resp = client.post(f"{API}/proposals/{pid}/taxes", json={"name": name, "rate": 5})
        assert resp.status_code == 201, resp.text

    detail = client.get(f"{API}/proposals/{pid}").json()
    financials = client.get(f"{API}/proposals/{pid}/financials").json()

    tax_rows = [t["amount"] for t in detail["taxes"]]
    assert tax_rows == [5.0, 5.0]
    assert round(sum(tax_rows), 2) == financials["subtotal_taxes"] == 10.0
    assert [t["amount"] for t in financials["taxes"]] == tax_rows
    assert detail["total_amount"] == financials["total_amount"] == 110.05


def test_line_item_unit_price_and_multiplier(client):
    product = _product(client, "M", 200, 120)
    pid = _proposal(client)["id"]

    resp = client.post(
        f"{API}/proposals/{pid}/items",
        json={"product_id": product["id"], "quantity": 2, "discount": 10},
    )
    assert resp.status_code == 201
    item = resp.json()
    assert item["unit_price"] == 180
    assert item["amount"] == 360
    assert item["profit"] == 120

    resp = client.patch(f"{API}/proposals/{pid}/items/{item['id']}", json={"unit_price": 270})
    assert resp.status_code == 200
    item = resp.json()
    assert item["multiplier"] == 1.5
    assert item["amount"] == 540


def test_derived_multiplier_is_clamped_to_column_range(client):
    product = _product(client, "TINY", 0.01, 0)
    pid = _proposal(client)["id"]

    resp = client.post(
        f"{API}/proposals/{pid}/items",
        json={"product_id": product["id"], "unit_price": 5000000},
    )
    assert resp.status_code == 201, resp.text
    item = resp.json()
    assert item["unit_price"] == 5000000
    assert item["multiplier"] == 99999.9999

    resp = client.patch(f"{API}/proposals/{pid}/items/{item['id']}", json={"unit_price": 7000000})
    assert resp.status_code == 200
    assert resp.json()["multiplier"] == 99999.9999
    assert resp.json()["amount"] == 7000000

    resp = client.post(
        f"{API}/proposals/{pid}/items",
        json={"product_id": product["id"], "multiplier": 200000},
    )
    assert resp.status_code == 422


def test_line_item_validation(client):
    product = _product(client, "V", 100, 50)
    pid = _proposal(client)["id"]

    resp = client.post(
        f"{API}/proposals/{pid}/items", json={"product_id": product["id"], "quantity": 0}
    )
    assert resp.status_code == 422

    resp = client.post(
        f"{API}/proposals/{pid}/items", json={"product_id": product["id"], "discount": 60}
    )
    assert resp.status_code == 422

    resp = client.post(f"{API}/proposals/{pid}/items", json={"product_id": 999})
    assert resp.status_code == 400


def test_status_change_stamps_sent_at_and_logs(client):
    pid = _proposal(client)["id"]

    resp = client.patch(f"{API}/proposals/{pid}", json={"status": "Sent"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "Sent"
    assert body["sent_at"] is not None

    activities = client.get(f"{API}/proposals/{pid}/activities").json()
    kinds = [a["kind"] for a in activities]
    assert "StatusChanged" in kinds
    assert "Created" in kinds
    changed = next(a for a in activities if a["kind"] == "StatusChanged")
    assert changed["description"] == "Status changed from Draft to Sent"


def test_add_comment(client):
    pid = _proposal(client)["id"]

    resp = client.post(f"{API}/proposals/{pid}/activities", json={"comment": "Call back Monday"})
    assert resp.status_code == 201
    assert resp.json()[0]["kind"] == "CommentAdded"
    assert resp.json()[0]["details"] == "Call back Monday"


def test_delete_proposal(client):
    pid = _seed_priced_proposal(client)

    assert client.delete(f"{API}/proposals/{pid}").status_code == 204
    assert client.get(f"{API}/proposals/{pid}").status_code == 404


def test_list_proposals_filters(client):
    _proposal(client, number="P-1", customer_name="Acme")
    _proposal(client, number="P-2", customer_name="Globex")

    resp = client.get(f"{API}/proposals", params={"q": "glob"})
    assert resp.status_code == 200
    assert [p["number"] for p in resp.json()] == ["P-2"]


def test_payment_conditions_defaults_and_update(client):
    pid = _seed_priced_proposal(client)

    detail = client.get(f"{API}/proposals/{pid}").json()
    assert detail["payment_terms_text"] == "30 days net"
    assert detail["deposit_required"] is False
    assert detail["accepted_payment_methods"] == ["Bank Transfer"]
    assert detail["deposit_due"] == 0

    resp = client.patch(
        f"{API}/proposals/{pid}",
        json={
            "payment_terms_text": "Net 45",
            "deposit_required": True,
            "deposit_amount": 300,
            "accepted_payment_methods": ["bank transfer", "Credit Card", "Bank Transfer"],
            "late_penalty": "1.5% per month",
            "invoice_schedule": "On delivery",
        },
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["payment_terms_text"] == "Net 45"
    assert body["deposit_required"] is True
    assert body["accepted_payment_methods"] == ["Bank Transfer", "Credit Card"]
    assert body["late_penalty"] == "1.5% per month"
    assert body["deposit_due"] == 300

    # 25% of the 2200 total takes precedence over the fixed amount.
    resp = client.patch(f"{API}/proposals/{pid}", json={"deposit_percentage": 25})
    assert resp.status_code == 200
    assert resp.json()["deposit_due"] == 550
    assert resp.json()["deposit_amount"] == 300

    activities = client.get(f"{API}/proposals/{pid}/activities").json()
    assert activities[0]["kind"] == "Updated"
    assert "payment conditions" in activities[0]["description"]


def test_payment_conditions_validation(client):
    pid = _proposal(client)["id"]

    resp = client.patch(f"{API}/proposals/{pid}", json={"accepted_payment_methods": ["Barter"]})
    assert resp.status_code == 422
    resp = client.patch(f"{API}/proposals/{pid}", json={"deposit_percentage": 120})
    assert resp.status_code == 422
