"""
End-to-end tests of the HTTP surface against the fake backend.
"""
from decimal import Decimal

LEDGERS = {
    "v1": {
        "debit": [{"_id": "p1", "date": "2024-01-10", "amount": 1000, "paymentMethod": "Credit"}],
        "credit": [{"_id": "pay1", "date": "2024-01-15", "amount": 400}],
    },
    "v2": {"debit": [], "credit": []},
}


def vendor_backend(backend):
    backend.add("/api/companies/my", [{"_id": "co1", "businessName": "Acme Farms", "client": "cl1"}])
    backend.add("/api/vendors", [
        {"_id": "v1", "vendorName": "Feed Co", "balance": -500, "balances": {"co1": -500, "co2": -20}},
        {"_id": "v2", "vendorName": "Vet Care"},
    ])
    backend.add("/api/ledger/vendor-payables", lambda request: LEDGERS[request.url.params["vendorId"]])


def customer_backend(backend):
    backend.add("/api/parties", {"data": [{"_id": "c1", "name": "Kiran"}, {"_id": "c2", "name": "Meena"}]})
    backend.add("/api/sales", {"data": [
        {"_id": "s1", "party": "c1", "date": "2024-03-01", "totalAmount": 500, "paymentMethod": "Credit"},
        {"_id": "s2", "party": "c2", "date": "2024-03-03", "totalAmount": 100, "paymentMethod": "Cash"},
    ]})
    backend.add("/api/receipts", {"data": [
        {"_id": "r1", "party": "c1", "date": "2024-03-04", "amount": 200},
    ]})


def rows_by_id(body):
    return {row["id"]: row for row in body["items"]}


class TestSession:
    def test_root(self, client):
        assert client.get("/").status_code == 200

    def test_lifecycle(self, client):
        assert client.get("/session").json()["authenticated"] is False

        response = client.put("/session", json={"token": "tok", "user": {"_id": "u1"}})
        assert response.status_code == 200
        assert response.json()["authenticated"] is True
        assert client.get("/session").json()["user"] == {"_id": "u1"}

        assert client.delete("/session").status_code == 204
        assert client.get("/session").json()["authenticated"] is False

    def test_company_selection(self, logged_in, backend):
        vendor_backend(backend)
        response = logged_in.put("/session/company", json={"company_id": "co1"})
        assert response.status_code == 200
        assert logged_in.get("/session/company").json() == {"company_id": "co1"}

        logged_in.get("/payables/vendor")
        assert backend.params_of("/api/vendors")[-1] == {"companyId": "co1"}

        assert logged_in.put("/session/company", json={"company_id": "nope"}).status_code == 404
        assert logged_in.put("/session/company", json={"company_id": None}).json() == {"company_id": None}

    def test_companies(self, logged_in, backend):
        vendor_backend(backend)
        body = logged_in.get("/companies", params={"refresh": True}).json()
        assert body["companies"] == [{"id": "co1", "business_name": "Acme Farms", "client_id": "cl1"}]
        assert body["selected_company_id"] is None


class TestPayables:
    def test_requires_login(self, client):
        assert client.get("/payables/vendor").status_code == 401

    def test_list_then_visible(self, logged_in, backend):
        vendor_backend(backend)
        body = logged_in.get("/payables/vendor").json()
        rows = rows_by_id(body)
        assert body["total_items"] == 2
        assert rows["v1"]["state"] == "idle"
        assert rows["v1"]["is_fallback"] is True
        assert Decimal(rows["v1"]["balance"]) == Decimal("520")

        body = logged_in.post("/payables/vendor/visible", json={"ids": ["v1", "v2"]}).json()
        rows = rows_by_id(body)
        assert rows["v1"]["state"] == "loaded"
        assert Decimal(rows["v1"]["balance"]) == Decimal("600")
        assert rows["v1"]["label"] == "You Owe"
        assert rows["v2"]["label"] == "Settled"
        assert [row["id"] for row in body["items"]] == ["v1", "v2"]

        logged_in.post("/payables/vendor/visible", json={"ids": ["v1", "v2"]})
        assert backend.count("/api/ledger/vendor-payables") == 2

    def test_ledger(self, logged_in, backend):
        vendor_backend(backend)
        body = logged_in.get("/payables/vendor/v1/ledger", params={"from_date": "2024-01-01"}).json()
        assert [e["id"] for e in body["credit_entries"]] == ["p1"]
        assert [e["id"] for e in body["debit_entries"]] == ["pay1"]
        assert "line_items" not in body["credit_entries"][0]
        assert Decimal(body["totals"]["balance"]) == Decimal("600")
        assert backend.params_of("/api/ledger/vendor-payables")[0]["fromDate"] == "2024-01-01"

    def test_totals(self, logged_in, backend):
        vendor_backend(backend)
        assert logged_in.get("/payables/totals").json()["partial"] is True
        logged_in.post("/payables/vendor/visible", json={"ids": ["v1", "v2"]})
        body = logged_in.get("/payables/totals").json()
        assert body["partial"] is False
        assert Decimal(body["balance"]) == Decimal("600")

    def test_reported_balance(self, logged_in, backend):
        backend.add("/api/vendors/v1/balance", {"balance": -300})
        body = logged_in.get("/payables/vendor/v1/reported-balance").json()
        assert body["source"] == "backend"
        assert Decimal(body["balance"]) == Decimal("300")

    def test_upstream_failure_gives_empty_list_with_error(self, logged_in, backend):
        backend.add("/api/vendors", {"message": "boom"}, status=500)
        response = logged_in.get("/payables/vendor")
        assert response.status_code == 200
        assert response.json()["items"] == []
        assert response.json()["error"]

    def test_refresh_reloads_the_list(self, logged_in, backend):
        vendor_backend(backend)
        logged_in.get("/payables/vendor")
        logged_in.post("/payables/refresh")
        assert backend.count("/api/vendors") == 2

    def test_customers_are_not_payables(self, logged_in):
        assert logged_in.get("/payables/customer").status_code == 404

    def test_inverted_date_range(self, logged_in):
        response = logged_in.get("/payables/vendor", params={"from_date": "2024-02-01", "to_date": "2024-01-01"})
        assert response.status_code == 400


class TestReceivables:
    def test_parties_and_balances(self, logged_in, backend):
        customer_backend(backend)
        body = logged_in.get("/receivables/parties").json()
        assert body["total_items"] == 2

        body = logged_in.post("/receivables/parties/visible", json={"ids": ["c1", "c2"]}).json()
        rows = rows_by_id(body)
        assert Decimal(rows["c1"]["balance"]) == Decimal("300")
        assert rows["c1"]["label"] == "Customer Owes"
        assert backend.count("/api/sales") == 1

    def test_totals_and_ledger(self, logged_in, backend):
        customer_backend(backend)
        totals = logged_in.get("/receivables/totals").json()
        assert Decimal(totals["total_credit"]) == Decimal("600")
        assert Decimal(totals["total_debit"]) == Decimal("300")
        assert totals["partial"] is False

        ledger = logged_in.get("/receivables/parties/c1/ledger").json()
        assert ledger["title"] == "Customer Ledger"
        assert Decimal(ledger["totals"]["balance"]) == Decimal("300")

    def test_oversized_sale_counts_as_zero(self, logged_in, backend):
        customer_backend(backend)
        backend.add("/api/sales", {"data": [
            {"_id": "s1", "party": "c1", "date": "2024-03-01", "totalAmount": "1e30", "paymentMethod": "Credit"},
            {"_id": "s2", "party": "c1", "date": "2024-03-02", "totalAmount": 50, "paymentMethod": "Credit"},
        ]})
        response = logged_in.get("/receivables/totals")
        assert response.status_code == 200
        assert Decimal(response.json()["total_credit"]) == Decimal("50")


class TestTransactions:
    def test_line_items(self, logged_in, backend):
        backend.add("/api/purchase/p1", {"entry": {"_id": "p1", "products": [{"product": "Feed", "amount": 100}]}})
        body = logged_in.get("/transactions/payables/p1/items").json()
        assert body["source"] == "purchase"
        assert body["items"][0]["name"] == "Feed"

    def test_unknown_transaction(self, logged_in):
        assert logged_in.get("/transactions/receivables/zzz/items").status_code == 404

    def test_unknown_side(self, logged_in):
        assert logged_in.get("/transactions/elsewhere/p1/items").status_code == 422

