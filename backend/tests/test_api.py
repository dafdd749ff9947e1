from datetime import date

import pytest


@pytest.fixture()
def manager(auth_headers):
    return auth_headers("gerant", "manager")


@pytest.fixture()
def viewer(auth_headers):
    return auth_headers("lecteur", "viewer")


def _create_job(client, headers, **extra):
    payload = {"Number": "AFF-API-1", "Label": "Escalier chêne", "TargetRevenue": 50000, "HourlyRate": 40}
    payload.update(extra)
    r = client.post("/jobs", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


# ---- auth ----
def test_protected_routes_need_a_token(client):
    r = client.get("/jobs")
    assert r.status_code == 401
    assert r.json()["ok"] is False


def test_login_rejects_wrong_password(client, make_user):
    make_user("paul", "viewer")
    r = client.post("/auth/login", data={"username": "paul", "password": "nope"})
    assert r.status_code == 401


def test_me(client, viewer):
    r = client.get("/auth/me", headers=viewer)
    assert r.status_code == 200
    assert r.json()["Role"] == "viewer"


def test_viewer_cannot_create(client, viewer):
    r = client.post("/jobs", json={"Number": "X", "Label": "Y"}, headers=viewer)
    assert r.status_code == 403


def test_admin_registers_users(client, auth_headers):
    admin = auth_headers("root", "admin")
    r = client.post(
        "/auth/register",
        json={"username": "atelier", "password": "secret123", "role": "operator"},
        headers=admin,
    )
    assert r.status_code == 201, r.text
    assert r.json()["Role"] == "operator"


# ---- jobs / purchase orders ----
def test_purchase_order_flow(client, manager, categories):
    job = _create_job(client, manager)
    r = client.post(
        "/purchase-orders",
        json={
            "JobID": job["JobID"],
            "CategoryID": categories[0].CategoryID,
            "SupplierName": "Scierie du Lac",
            "AmountHT": "1234.565",
            "RequestedDeliveryDate": "2000-01-01",
        },
        headers=manager,
    )
    assert r.status_code == 201, r.text
    po = r.json()
    assert po["Number"].startswith("BDC-")
    assert po["AmountHT"] == 1234.57
    assert po["EffectiveStatus"] == "PENDING"
    assert po["StatusLabel"] == "En attente"
    assert po["IsLate"] is True
    assert po["RequiresCredentialToDelete"] is False

    r = client.post(f"/purchase-orders/{po['OrderID']}/validate", headers=manager)
    assert r.status_code == 200
    assert r.json()["RequiresCredentialToDelete"] is True
    assert r.json()["ValidatedBy"] == "gerant"

    r = client.post(f"/purchase-orders/{po['OrderID']}/cancel", headers=manager)
    assert r.status_code == 409
    body = r.json()
    assert body["ok"] is False
    assert body["meta"]["type"] == "InvalidTransitionError"
    assert body["meta"]["entity"] == "PurchaseOrder"

    r = client.post(
        f"/purchase-orders/{po['OrderID']}/receive", json={"ReceptionDate": "2025-03-20"}, headers=manager
    )
    assert r.status_code == 200
    assert r.json()["EffectiveStatus"] == "RECEIVED"
    assert r.json()["IsLate"] is False

    r = client.get(f"/jobs/{job['JobID']}", headers=manager)
    assert r.json()["TotalReceived"] == 1234.57

    r = client.get("/purchase-orders", params={"status_s": "RECEIVED"}, headers=manager)
    assert [p["OrderID"] for p in r.json()] == [po["OrderID"]]


def test_guarded_delete_over_http(client, auth_headers, categories):
    admin = auth_headers("root", "admin")
    job = _create_job(client, admin)
    r = client.post(
        "/purchase-orders",
        json={"JobID": job["JobID"], "CategoryID": categories[0].CategoryID, "SupplierName": "S", "AmountHT": 10},
        headers=admin,
    )
    po_id = r.json()["OrderID"]
    client.post(f"/purchase-orders/{po_id}/validate", headers=admin)

    r = client.delete(f"/purchase-orders/{po_id}", headers=admin)
    assert r.status_code == 401
    assert r.json()["meta"]["field"] == "credential"

    r = client.put("/auth/override-secret", json={"secret": "chantier42"}, headers=admin)
    assert r.status_code == 200

    r = client.delete(f"/purchase-orders/{po_id}", headers={**admin, "X-Delete-Credential": "chantier42"})
    assert r.status_code == 200
    assert r.json()["data"] == {"deleted": po_id}
    assert client.get(f"/purchase-orders/{po_id}", headers=admin).status_code == 404


def test_attachment_upload(client, manager, categories):
    job = _create_job(client, manager)
    r = client.post(
        "/purchase-orders",
        json={"JobID": job["JobID"], "CategoryID": categories[0].CategoryID, "SupplierName": "S", "AmountHT": 10},
        headers=manager,
    )
    po_id = r.json()["OrderID"]
    r = client.post(
        f"/purchase-orders/{po_id}/attachment",
        files={"file": ("bon.pdf", b"%PDF-1.4", "application/pdf")},
        headers=manager,
    )
    assert r.status_code == 200, r.text
    assert r.json()["AttachmentPath"].endswith("_bon.pdf")

    r = client.delete(f"/purchase-orders/{po_id}/attachment", headers=manager)
    assert r.status_code == 200, r.text
    assert r.json()["AttachmentPath"] is None


def test_request_validation_uses_envelope(client, manager):
    r = client.post("/purchase-orders", json={"JobID": 1}, headers=manager)
    assert r.status_code == 422
    body = r.json()
    assert body["ok"] is False
    assert body["error"] == "Validation error"
    assert body["meta"]["errors"]


# ---- estimation / finance ----
def test_estimation_and_snapshot(client, manager, categories):
    job = _create_job(client, manager, TargetRevenue=83333)
    r = client.put(
        f"/jobs/{job['JobID']}/estimation",
        json={"TargetPct": 30, "categories": [
            {"CategoryID": categories[0].CategoryID, "Percent": 25},
            {"CategoryID": categories[1].CategoryID, "Mode": "amount", "FixedAmount": 7000},
        ]},
        headers=manager,
    )
    assert r.status_code == 200, r.text
    est = r.json()
    assert est["TargetAmount"] == 25000.0
    assert est["total_percent"] == 53.0
    assert est["delta_percent"] == -47.0
    assert est["unallocated_amount"] == 11750.0

    r = client.post(
        f"/jobs/{job['JobID']}/estimation/categories/{categories[1].CategoryID}/mode",
        json={"Mode": "percent"},
        headers=manager,
    )
    assert r.status_code == 200

    r = client.get(f"/finance/jobs/{job['JobID']}/snapshot", params={"as_of": "2025-09-12"}, headers=manager)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is True
    assert body["meta"]["computed_on"] == "2025-09-12"
    assert body["data"]["metrics"]["purchases"]["target"] == 25000.0


def test_snapshot_unknown_job(client, viewer):
    r = client.get("/finance/jobs/999/snapshot", headers=viewer)
    assert r.status_code == 404
    assert r.json()["meta"] == {"type": "NotFoundError", "entity": "Job", "id": 999}


# ---- overhead ----
def test_overhead_endpoints(client, manager):
    r = client.post(
        "/overhead/items",
        json={"Label": "Loyer", "MonthlyAmountHT": "10629.57", "MonthlyAmountTTC": "12755.48", "Category": "LOCATION"},
        headers=manager,
    )
    assert r.status_code == 201, r.text
    item = r.json()

    r = client.get("/overhead/period", params={"start": "2025-09-01", "end": "2025-09-30"}, headers=manager)
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["workdays"] == 22
    assert data["total_hours"] == 154.0
    assert data["period_total_ht"] == 11692.53

    r = client.patch(
        f"/overhead/items/{item['ItemID']}", json={"Comment": "bail 3-6-9", "Version": item["Version"]}, headers=manager
    )
    assert r.status_code == 200
    r = client.patch(
        f"/overhead/items/{item['ItemID']}", json={"Comment": "stale", "Version": item["Version"]}, headers=manager
    )
    assert r.status_code == 409

    r = client.get("/overhead/stats", headers=manager)
    assert r.json()["data"]["active"] == 1
