"""HTTP surface: auth, catalog, properties, notifications and billing."""

import json
from datetime import datetime, timedelta, timezone

from app.models.deadline import DeadlineRecord
from app.models.notification import NotificationRecord
from app.models.subscription import Subscription
from app.models.user import Plan, User, UserRole
from conftest import auth_headers


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "ok"
    assert client.get("/health").json() == {"status": "healthy"}


# ── auth ───────────────────────────────────────────────────────


def test_register_login_me(client, outbox):
    r = client.post("/auth/register", json={
        "email": "New.Owner@Example.com", "password": "Password123!", "full_name": "New Owner",
    })
    assert r.status_code == 201
    body = r.json()
    assert body["user"]["email"] == "new.owner@example.com"
    assert body["user"]["plan"] == "free"
    assert body["user"]["role"] == "landlord"
    assert [m["to"] for m in outbox] == ["new.owner@example.com"]

    r = client.post("/auth/login", json={"email": "new.owner@example.com", "password": "Password123!"})
    assert r.status_code == 200
    token = r.json()["access_token"]
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["full_name"] == "New Owner"


def test_register_duplicate_and_bad_login(client, make_user):
    make_user(email="taken@example.com")
    r = client.post("/auth/register", json={"email": "taken@example.com", "password": "Password123!"})
    assert r.status_code == 400
    r = client.post("/auth/login", json={"email": "taken@example.com", "password": "wrong-password"})
    assert r.status_code == 401


def test_short_password_is_rejected(client):
    r = client.post("/auth/register", json={"email": "a@example.com", "password": "short"})
    assert r.status_code == 422


def test_missing_or_bad_token_is_401(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer nope"}).status_code == 401


# ── jurisdictions ──────────────────────────────────────────────


def test_jurisdiction_catalog(client):
    names = {j["municipality"] for j in client.get("/jurisdictions").json()}
    assert {"toronto", "mississauga", "brampton", "vaughan", "newmarket", "hamilton"} <= names

    toronto = client.get("/jurisdictions/Toronto").json()
    assert toronto["requires_registration"] is True
    assert any(r["id"] == "toronto_registration_required" for r in toronto["rules"])

    assert client.get("/jurisdictions/atlantis").status_code == 404


def test_mat_reporting_endpoint(client):
    body = client.get("/jurisdictions/toronto/mat-reporting").json()
    assert body["reporting"]["reporting_frequency"] == "quarterly"
    assert body["next_due"]["due_date"] is not None

    unknown = client.get("/jurisdictions/atlantis/mat-reporting").json()
    assert unknown["reporting"] is None
    assert unknown["next_due"] is None


# ── properties ─────────────────────────────────────────────────


def _toronto_payload(**overrides):
    payload = {
        "address_line1": "100 Queen St W",
        "municipality": " Toronto ",
        "usage_type": "short_term",
        "is_principal_residence": False,
        "emergency_contact": "416-555-0100",
        "provides_911_info": True,
        "exit_diagram_posted": True,
        "keeps_records": True,
        "annual_nights": 90,
    }
    payload.update(overrides)
    return payload


def test_create_property_returns_compliance_snapshot(client, db, make_user):
    user = make_user()
    r = client.post("/properties", json=_toronto_payload(), headers=auth_headers(user))
    assert r.status_code == 201
    body = r.json()
    assert body["property"]["municipality"] == "toronto"
    assert body["compliance_status"] == "non_compliant"
    failing = {rule["id"] for rule in body["failing_rules"]}
    assert {"toronto_registration_required", "toronto_principal_residence"} <= failing
    assert "STR operator registration required" in body["compliance_explanation"]
    assert body["next_mat_due"]["due_date"] is not None

    db.expire_all()
    keys = {d.rule_key for d in db.query(DeadlineRecord).filter(DeadlineRecord.property_id == body["property"]["id"])}
    assert keys == {"str_license", "insurance", "fire_inspection", "mat_filing"}


def test_create_property_requires_address(client, make_user):
    user = make_user()
    r = client.post("/properties", json=_toronto_payload(address_line1="   "), headers=auth_headers(user))
    assert r.status_code == 422


def test_property_crud_and_ownership(client, make_user):
    owner = make_user()
    other = make_user(email="other@example.com")
    created = client.post("/properties", json=_toronto_payload(), headers=auth_headers(owner)).json()
    pid = created["property"]["id"]

    assert [p["property"]["id"] for p in client.get("/properties", headers=auth_headers(owner)).json()] == [pid]
    assert client.get(f"/properties/{pid}", headers=auth_headers(other)).status_code == 404

    r = client.patch(
        f"/properties/{pid}",
        json={"is_principal_residence": True, "license_number": "STR-2401-0001"},
        headers=auth_headers(owner),
    )
    assert r.status_code == 200
    assert r.json()["compliance_status"] == "compliant"

    r = client.patch(f"/properties/{pid}", json={"municipality": None}, headers=auth_headers(owner))
    assert r.status_code == 400

    assert client.delete(f"/properties/{pid}", headers=auth_headers(owner)).status_code == 204
    assert client.get(f"/properties/{pid}", headers=auth_headers(owner)).status_code == 404


def test_changing_municipality_replaces_deadlines(client, make_user):
    user = make_user()
    pid = client.post("/properties", json=_toronto_payload(), headers=auth_headers(user)).json()["property"]["id"]
    client.patch(f"/properties/{pid}", json={"municipality": "hamilton"}, headers=auth_headers(user))
    deadlines = client.get(f"/properties/{pid}/deadlines", headers=auth_headers(user)).json()
    assert [d["rule_key"] for d in deadlines] == ["mat_filing"]


def test_score_is_paid_only(client, make_user, make_db_property):
    free = make_user()
    prop = make_db_property(free)
    assert client.get(f"/properties/{prop.id}/score", headers=auth_headers(free)).status_code == 402

    pro = make_user(email="pro@example.com", plan=Plan.paid)
    pro_prop = make_db_property(pro)
    body = client.get(f"/properties/{pro_prop.id}/score", headers=auth_headers(pro)).json()
    # Fresh deadlines are all upcoming: no penalties
    assert body["score"] == 100
    assert len(body["deadlines"]) == 4
    assert body["needs_attention"] == []


# ── notifications ──────────────────────────────────────────────


def test_generate_license_notifications_stores_and_emails_once(client, db, outbox, make_user, make_db_property):
    user = make_user()
    expiry = datetime.now(timezone.utc).date() + timedelta(days=30)
    prop = make_db_property(user, license_expiry=expiry)

    r = client.post("/notifications/generate", json={"kind": "license"}, headers=auth_headers(user))
    assert r.json() == {"generated": 1, "stored": 1, "emailed": 1, "properties": 1}
    assert outbox[-1]["subject"] == "STR License Expiring - toronto"

    again = client.post("/notifications/generate", json={"kind": "license"}, headers=auth_headers(user)).json()
    assert again["stored"] == 0
    assert again["emailed"] == 0
    assert len(outbox) == 1

    db.expire_all()
    record = db.query(NotificationRecord).one()
    assert record.property_id == prop.id
    assert record.emailed_at is not None


def test_list_and_mark_read(client, make_user, make_db_property):
    user = make_user()
    today = datetime.now(timezone.utc).date()
    make_db_property(user, license_expiry=today + timedelta(days=60))
    make_db_property(user, address_line1="9 Bay St", license_expiry=today - timedelta(days=3))
    client.post("/notifications/generate", json={"kind": "license"}, headers=auth_headers(user))

    items = client.get("/notifications", headers=auth_headers(user)).json()
    assert [n["priority"] for n in items] == ["critical", "medium"]

    r = client.patch(f"/notifications/{items[0]['id']}", json={"read": True}, headers=auth_headers(user))
    assert r.json()["read"] is True
    unread = client.get("/notifications", params={"unread_only": True}, headers=auth_headers(user)).json()
    assert [n["id"] for n in unread] == [items[1]["id"]]

    assert client.patch("/notifications/missing", json={"read": True}, headers=auth_headers(user)).status_code == 404


def test_bylaw_update_defaults_to_owners_in_municipality(client, outbox, make_user, make_db_property):
    toronto_owner = make_user()
    admin = make_user(email="ops@example.com", role=UserRole.admin)
    hamilton_owner = make_user(email="ham@example.com")
    make_db_property(toronto_owner)
    make_db_property(hamilton_owner, municipality="hamilton")

    r = client.post("/notifications/bylaw-update", json={
        "municipality": "Toronto", "title": "Licence fee change", "description": "Fees rise in January.",
    }, headers=auth_headers(admin))
    assert r.json()["stored"] == 1
    assert [m["to"] for m in outbox] == [toronto_owner.email]
    assert outbox[0]["subject"] == "By-law Update - toronto"

    assert client.get("/notifications", headers=auth_headers(hamilton_owner)).json() == []


def test_bylaw_update_rejects_unknown_users(client, make_user):
    user = make_user()
    admin = make_user(email="ops@example.com", role=UserRole.admin)
    r = client.post("/notifications/bylaw-update", json={
        "municipality": "toronto", "title": "t", "description": "d", "affected_user_ids": [user.id, 9999],
    }, headers=auth_headers(admin))
    assert r.status_code == 400


def test_bylaw_update_requires_admin(client, db, outbox, make_user, make_db_property):
    landlord = make_user(email="someone@example.com")
    other = make_user(email="other@example.com")
    make_db_property(other)
    r = client.post("/notifications/bylaw-update", json={
        "municipality": "toronto",
        "title": "Account suspended",
        "description": '<a href="https://evil.example/login">Sign in to keep your licence</a>',
    }, headers=auth_headers(landlord))
    assert r.status_code == 403
    assert outbox == []
    db.expire_all()
    assert db.query(NotificationRecord).count() == 0


def test_run_job_for_caller(client, db, make_user, make_db_property):
    user = make_user()
    prop = make_db_property(user, license_expiry=datetime.now(timezone.utc).date() - timedelta(days=1))
    body = client.post("/notifications/run-job", headers=auth_headers(user)).json()
    assert body["properties"] == 1
    assert body["stored"] >= 1
    assert body["emailed"] >= 1

    db.expire_all()
    licence = db.query(DeadlineRecord).filter(
        DeadlineRecord.property_id == prop.id, DeadlineRecord.rule_key == "str_license",
    ).one()
    assert licence.last_notified_at is not None


def test_digest_requires_paid_plan(client, db, outbox, make_user, make_db_property):
    free = make_user()
    assert client.post("/notifications/digest", headers=auth_headers(free)).status_code == 402

    pro = make_user(email="pro@example.com", plan=Plan.paid, full_name="Pat")
    make_db_property(pro)
    body = client.post("/notifications/digest", headers=auth_headers(pro)).json()
    assert body["subject"] == "Your Monthly Compliance Digest"
    assert body["properties"] == 1
    # Nothing due within 30 days on a fresh property
    assert body["upcoming_deadlines"] == []
    assert body["sent"] is False
    assert outbox == []


def test_test_email_without_provider_is_503(client, make_user):
    user = make_user()
    assert client.post("/notifications/test-email", headers=auth_headers(user)).status_code == 503


# ── billing ────────────────────────────────────────────────────


def test_checkout_without_stripe_is_503(client, make_user):
    user = make_user()
    assert client.post("/billing/checkout", headers=auth_headers(user)).status_code == 503


def test_subscription_status_for_free_user(client, make_user):
    user = make_user()
    body = client.get("/billing/subscription", headers=auth_headers(user)).json()
    assert body["plan"] == "free"
    assert body["status"] is None
    assert body["price"] == "$29.00 CAD/month"
    assert body["publishable_key"] is None


def test_subscription_exposes_publishable_key(client, make_user, monkeypatch):
    from app.config import get_settings

    monkeypatch.setattr(get_settings(), "stripe_publishable_key", "pk_test_123")
    body = client.get("/billing/subscription", headers=auth_headers(make_user())).json()
    assert body["publishable_key"] == "pk_test_123"


def test_webhook_checkout_completed_upgrades_user(client, db, make_user):
    user = make_user()
    event = {
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_1",
            "customer": "cus_abc",
            "subscription": "sub_abc",
            "metadata": {"user_id": str(user.id), "plan": "pro"},
        }},
    }
    r = client.post("/billing/webhook", content=json.dumps(event), headers={"Content-Type": "application/json"})
    assert r.json() == {"received": True, "success": True, "error": None}

    db.expire_all()
    assert db.get(User, user.id).plan == Plan.paid
    assert db.query(Subscription).filter(Subscription.user_id == user.id).one().stripe_customer_id == "cus_abc"


def test_webhook_rejects_garbage(client):
    assert client.post("/billing/webhook", content=b"{not json").status_code == 400


def test_unsigned_webhook_rejected_outside_development(client, db, make_user, monkeypatch):
    from app.config import get_settings

    monkeypatch.setattr(get_settings(), "app_env", "production")
    user = make_user()
    event = {
        "id": "evt_2",
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_2", "customer": "cus_x", "metadata": {"user_id": str(user.id)}}},
    }
    r = client.post("/billing/webhook", content=json.dumps(event), headers={"Content-Type": "application/json"})
    assert r.status_code == 400

    db.expire_all()
    assert db.get(User, user.id).plan == Plan.free
    assert db.query(Subscription).count() == 0
