# tests/test_api_storefront.py
from __future__ import annotations

from decimal import Decimal

import pytest

from app.core.config import settings

SUPER_ADMIN = "root@example.com"


async def login(client, email: str) -> dict:
    r = await client.post("/api/v1/auth/request-code", json={"email": email})
    assert r.status_code == 200, r.text
    code = r.json()["code"]

    r = await client.post("/api/v1/auth/verify-code", json={"email": email, "code": code})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


async def new_profile(client, auth: dict, name: str, **extra) -> dict:
    r = await client.post("/api/v1/auth/profiles", json={"name": name, **extra}, headers=auth)
    assert r.status_code == 201, r.text
    return r.json()


def acting(auth: dict, profile: dict) -> dict:
    return {**auth, "X-Profile-Id": profile["profile"]["id"]}


async def admin_with_product(client, structure=None, price="100.00", cost="60.00", stock=10):
    auth = await login(client, SUPER_ADMIN)
    admin = await new_profile(client, auth, "Root Admin")
    headers = acting(auth, admin)

    r = await client.post(
        "/api/v1/products",
        json={
            "name": "Moringa tea",
            "price": price,
            "cost": cost,
            "stock": stock,
            "buyer_reward_points": 3,
            "commission_structure": structure if structure is not None else [
                {"level": 1, "amount": "25"},
                {"level": 2, "amount": "15"},
            ],
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return admin, headers, r.json()


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_login_and_profile_listing(client):
    auth = await login(client, "Alice@Example.com")

    created = await new_profile(client, auth, "  Alice   Doe ")
    profile = created["profile"]
    assert profile["name"] == "Alice Doe"
    assert profile["role"] == "customer"
    assert profile["unique_user_id"].startswith("BRI")
    assert len(profile["referral_code"]) == 8
    assert created["placed"] is False

    r = await client.get("/api/v1/auth/me", headers=auth)
    assert r.status_code == 200
    body = r.json()
    assert body["email"] == "alice@example.com"
    assert [p["id"] for p in body["profiles"]] == [profile["id"]]


@pytest.mark.asyncio
async def test_wrong_code_is_rejected(client):
    r = await client.post("/api/v1/auth/request-code", json={"email": "bob@example.com"})
    code = r.json()["code"]
    wrong = "000000" if code != "000000" else "111111"

    r = await client.post("/api/v1/auth/verify-code", json={"email": "bob@example.com", "code": wrong})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_profile_limit_per_account(client):
    auth = await login(client, "many@example.com")
    for i in range(5):
        await new_profile(client, auth, f"P{i}")

    r = await client.post("/api/v1/auth/profiles", json={"name": "P5"}, headers=auth)
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "PROFILE_LIMIT_REACHED"


@pytest.mark.asyncio
async def test_profile_header_must_belong_to_account(client):
    alice = await login(client, "alice@example.com")
    bob = await login(client, "bob@example.com")
    alice_profile = await new_profile(client, alice, "Alice")

    r = await client.get("/api/v1/mlm/summary", headers={**bob, "X-Profile-Id": alice_profile["profile"]["id"]})
    assert r.status_code == 403

    r = await client.get("/api/v1/mlm/summary", headers={**bob, "X-Profile-Id": "not-a-uuid"})
    assert r.status_code == 422

    r = await client.get("/api/v1/mlm/summary", headers=bob)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_signup_with_referral_code_places_in_tree(client):
    auth = await login(client, "sponsor@example.com")
    sponsor = await new_profile(client, auth, "Sponsor")
    code = sponsor["profile"]["referral_code"]

    for i, expected in enumerate(["left", "right"]):
        other = await login(client, f"recruit{i}@example.com")
        created = await new_profile(client, other, f"Recruit {i}", referral_code=code.lower())
        assert created["placed"] is True
        assert created["profile"]["referred_by_id"] == sponsor["profile"]["id"]
        assert expected in created["placement_message"]

    r = await client.get("/api/v1/mlm/downline/direct", headers=acting(auth, sponsor))
    assert r.status_code == 200
    assert r.json()["count"] == 2

    spill_auth = await login(client, "spill@example.com")
    spill = await new_profile(client, spill_auth, "Spill", referral_code=code)
    r = await client.get("/api/v1/mlm/upline", headers=acting(spill_auth, spill))
    levels = [(m["level"], m["name"]) for m in r.json()]
    assert levels == [(1, "Recruit 0"), (2, "Sponsor")]

    r = await client.get("/api/v1/mlm/downline/complete", headers=acting(auth, sponsor))
    body = r.json()
    assert body["total"] == 3
    assert [(m["depth"], m["position"]) for m in body["items"]] == [(1, "left"), (1, "right"), (2, "left")]

    r = await client.get("/api/v1/mlm/tree?max_depth=2", headers=acting(auth, sponsor))
    tree = r.json()
    assert tree["left"]["name"] == "Recruit 0"
    assert tree["left"]["has_children"] is True
    assert tree["left"]["left"] is None


@pytest.mark.asyncio
async def test_invalid_referral_code_fails_signup(client):
    auth = await login(client, "lost@example.com")
    r = await client.post(
        "/api/v1/auth/profiles",
        json={"name": "Lost", "referral_code": "NOPE1234"},
        headers=auth,
    )
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "INVALID_REFERRAL_CODE"

    r = await client.get("/api/v1/auth/profiles", headers=auth)
    assert r.json() == []


@pytest.mark.asyncio
async def test_join_tree_later_and_referral_code_endpoint(client):
    auth = await login(client, "sponsor@example.com")
    sponsor = await new_profile(client, auth, "Sponsor")

    r = await client.post("/api/v1/mlm/referral-code", headers=acting(auth, sponsor))
    assert r.status_code == 200
    assert r.json()["referral_code"] == sponsor["profile"]["referral_code"]
    assert r.json()["referral_link"].endswith(f"ref={sponsor['profile']['referral_code']}")

    late_auth = await login(client, "late@example.com")
    late = await new_profile(client, late_auth, "Late")
    r = await client.post(
        "/api/v1/mlm/join-tree",
        json={"referral_code": sponsor["profile"]["referral_code"]},
        headers=acting(late_auth, late),
    )
    assert r.status_code == 200, r.text
    assert r.json()["placed"] is True
    assert r.json()["position"] == "left"

    r = await client.post(
        "/api/v1/mlm/join-tree",
        json={"referral_code": sponsor["profile"]["referral_code"]},
        headers=acting(late_auth, late),
    )
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "USER_ALREADY_PLACED"


@pytest.mark.asyncio
async def test_commission_table_over_margin_is_rejected(client):
    admin, headers, product = await admin_with_product(client)
    assert Decimal(product["total_commission"]) == Decimal("40.00")
    assert Decimal(product["profit_margin"]) == Decimal("0.00")

    r = await client.put(
        f"/api/v1/products/{product['id']}/commission",
        json={"commission_structure": [{"level": 1, "amount": "30"}, {"level": 2, "amount": "20"}]},
        headers=headers,
    )
    assert r.status_code == 422
    detail = r.json()["detail"]
    assert detail["error"] == "COMMISSION_EXCEEDS_PROFIT"
    assert detail["available_margin"] == "40.00"

    r = await client.get(f"/api/v1/products/{product['id']}/commission", headers=headers)
    body = r.json()
    assert [(e["level"], Decimal(e["amount"])) for e in body["commission_structure"]] == [
        (1, Decimal("25.00")),
        (2, Decimal("15.00")),
    ]


@pytest.mark.asyncio
async def test_customer_cannot_manage_products(client):
    auth = await login(client, "shopper@example.com")
    shopper = await new_profile(client, auth, "Shopper")

    r = await client.post(
        "/api/v1/products",
        json={"name": "Nope", "price": "10.00"},
        headers=acting(auth, shopper),
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_order_approval_distributes_commissions(client):
    admin, admin_headers, product = await admin_with_product(
        client, structure=[{"level": 1, "amount": "25"}, {"level": 2, "amount": "15"}]
    )

    a_auth = await login(client, "a@example.com")
    a = await new_profile(client, a_auth, "A", referral_code=admin["profile"]["referral_code"])
    b_auth = await login(client, "b@example.com")
    b = await new_profile(client, b_auth, "B", referral_code=a["profile"]["referral_code"])

    r = await client.post(
        "/api/v1/orders",
        json={"product_id": product["id"], "quantity": 2},
        headers=acting(b_auth, b),
    )
    assert r.status_code == 201, r.text
    order = r.json()
    assert order["status"] == "pending_admin_approval"
    assert Decimal(order["total_price"]) == Decimal("200.00")

    r = await client.get("/api/v1/orders/pending", headers=admin_headers)
    assert [o["id"] for o in r.json()] == [order["id"]]

    r = await client.post(f"/api/v1/orders/{order['id']}/approve", headers=admin_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["order"]["status"] == "completed"
    assert body["distribution"]["commissions_created"] == 2
    assert Decimal(body["distribution"]["total_distributed"]) == Decimal("80.00")
    assert body["distribution"]["buyer_points_awarded"] == 6

    r = await client.post(f"/api/v1/orders/{order['id']}/approve", headers=admin_headers)
    assert r.status_code == 409

    r = await client.get("/api/v1/mlm/summary", headers=acting(a_auth, a))
    summary = r.json()
    assert Decimal(summary["total_earnings"]) == Decimal("50.00")
    assert Decimal(summary["pending_withdrawal"]) == Decimal("50.00")
    assert summary["direct_referrals"] == 1

    r = await client.get("/api/v1/mlm/summary", headers=admin_headers)
    assert Decimal(r.json()["total_earnings"]) == Decimal("30.00")

    r = await client.get("/api/v1/mlm/commissions?status=pending", headers=acting(a_auth, a))
    page = r.json()
    assert page["total"] == 1
    assert page["items"][0]["level"] == 1

    r = await client.get(f"/api/v1/products/{product['id']}")
    assert r.json()["stock"] == 8

    r = await client.get("/api/v1/mlm/summary", headers=acting(b_auth, b))
    assert r.json()["total_points"] == 6


@pytest.mark.asyncio
async def test_withdrawal_and_refund_through_api(client):
    admin, admin_headers, product = await admin_with_product(client, structure=[{"level": 1, "amount": "10"}])

    a_auth = await login(client, "a@example.com")
    a = await new_profile(client, a_auth, "A", referral_code=admin["profile"]["referral_code"])

    r = await client.post(
        "/api/v1/orders/purchase-for-user",
        json={"unique_user_id": a["profile"]["unique_user_id"], "product_id": product["id"], "quantity": 1},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    first_order = r.json()["order"]
    assert first_order["status"] == "completed"

    r = await client.post(
        "/api/v1/orders/purchase-for-user",
        json={"unique_user_id": a["profile"]["unique_user_id"], "product_id": product["id"], "quantity": 1},
        headers=admin_headers,
    )
    second_order = r.json()["order"]

    r = await client.post(
        "/api/v1/ledger/withdrawals",
        json={"user_id": admin["profile"]["id"], "amount": "25.00"},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "INSUFFICIENT_PENDING_BALANCE"

    r = await client.post(
        "/api/v1/ledger/withdrawals",
        json={"user_id": admin["profile"]["id"], "amount": "5.00"},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    assert Decimal(r.json()["pending_withdrawal"]) == Decimal("15.00")
    assert Decimal(r.json()["withdrawn_amount"]) == Decimal("5.00")

    r = await client.post(f"/api/v1/orders/{first_order['id']}/refund", headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["order"]["status"] == "refunded"
    assert r.json()["cancelled_commissions"] == 1

    r = await client.get("/api/v1/mlm/commissions?status=pending", headers=admin_headers)
    pending = r.json()["items"]
    assert len(pending) == 1

    r = await client.post(f"/api/v1/ledger/commissions/{pending[0]['id']}/mark-paid", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "paid"

    r = await client.post(f"/api/v1/orders/{second_order['id']}/refund", headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "RECORD_NOT_CANCELLABLE"

    r = await client.get("/api/v1/mlm/summary", headers=admin_headers)
    summary = r.json()
    assert Decimal(summary["total_earnings"]) == Decimal("10.00")
    assert Decimal(summary["pending_withdrawal"]) == Decimal("5.00")
    assert Decimal(summary["withdrawn_amount"]) == Decimal("5.00")


@pytest.mark.asyncio
async def test_shopkeeper_request_and_invite_onboarding(client):
    root_auth = await login(client, SUPER_ADMIN)
    root = await new_profile(client, root_auth, "Root")
    root_headers = acting(root_auth, root)
    assert root["profile"]["is_super_admin"] is True

    # without invite: pending + review
    shop_auth = await login(client, "shop@example.com")
    pending = await new_profile(client, shop_auth, "Corner Shop", role="shopkeeper", message="please")
    assert pending["profile"]["role"] == "pending"
    assert pending["profile"]["referral_code"] is None
    request_id = pending["shopkeeper_request_id"]

    r = await client.post("/api/v1/orders", json={"product_id": root["profile"]["id"]}, headers=acting(shop_auth, pending))
    assert r.status_code == 403

    r = await client.get("/api/v1/invites/shopkeeper-requests?status=pending", headers=root_headers)
    assert [x["id"] for x in r.json()] == [request_id]

    r = await client.post(f"/api/v1/invites/shopkeeper-requests/{request_id}/approve", headers=root_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "approved"

    r = await client.get("/api/v1/auth/profiles", headers=shop_auth)
    approved = r.json()[0]
    assert approved["role"] == "shopkeeper"
    assert approved["is_admin"] is True
    assert approved["referral_code"]

    r = await client.post(f"/api/v1/invites/shopkeeper-requests/{request_id}/approve", headers=root_headers)
    assert r.status_code == 409

    # with invite: approved immediately, single use
    r = await client.post("/api/v1/invites", json={"expires_in_hours": 24}, headers=root_headers)
    assert r.status_code == 201, r.text
    token = r.json()["token"]
    assert token in r.json()["signup_link"]

    inv_auth = await login(client, "invited@example.com")
    invited = await new_profile(client, inv_auth, "Invited Shop", role="shopkeeper", invite_token=token)
    assert invited["profile"]["role"] == "shopkeeper"
    assert invited["profile"]["is_admin"] is True
    assert invited["placed"] is False

    again_auth = await login(client, "again@example.com")
    r = await client.post(
        "/api/v1/auth/profiles",
        json={"name": "Again", "role": "shopkeeper", "invite_token": token},
        headers=again_auth,
    )
    assert r.status_code == 403
    assert r.json()["detail"]["error"] == "INELIGIBLE_USER"

    r = await client.post("/api/v1/invites", json={"expires_in_hours": 10000}, headers=root_headers)
    assert r.status_code == 422

    r = await client.get("/api/v1/invites", headers=acting(inv_auth, invited))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_admin_lists_and_searches_users(client):
    root_auth = await login(client, SUPER_ADMIN)
    root = await new_profile(client, root_auth, "Root")
    root_headers = acting(root_auth, root)

    grace_auth = await login(client, "grace@example.com")
    grace = await new_profile(client, grace_auth, "Grace Hopper")
    alan_auth = await login(client, "alan@example.com")
    await new_profile(client, alan_auth, "Alan Turing")

    r = await client.get("/api/v1/admin/users", headers=root_headers)
    assert r.status_code == 200
    assert len(r.json()) == 3

    r = await client.get("/api/v1/admin/users?search=HOPPER", headers=root_headers)
    assert [u["name"] for u in r.json()] == ["Grace Hopper"]

    uid = grace["profile"]["unique_user_id"]
    r = await client.get(f"/api/v1/admin/users?search={uid.lower()}", headers=root_headers)
    assert [u["id"] for u in r.json()] == [grace["profile"]["id"]]

    r = await client.get("/api/v1/admin/users?search=alan@", headers=root_headers)
    assert [u["name"] for u in r.json()] == ["Alan Turing"]

    r = await client.get("/api/v1/admin/users?role=shopkeeper", headers=root_headers)
    assert [u["id"] for u in r.json()] == [root["profile"]["id"]]

    r = await client.get("/api/v1/admin/users", headers=acting(grace_auth, grace))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_signup_waits_for_activation_then_places(client, monkeypatch):
    monkeypatch.setattr(settings, "REQUIRE_PROFILE_ACTIVATION", True)

    root_auth = await login(client, SUPER_ADMIN)
    root = await new_profile(client, root_auth, "Root")
    root_headers = acting(root_auth, root)
    assert root["profile"]["is_active"] is True

    auth = await login(client, "newbie@example.com")
    r = await client.post(
        "/api/v1/auth/profiles",
        json={"name": "Newbie", "referral_code": "NOPE1234"},
        headers=auth,
    )
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "INVALID_REFERRAL_CODE"

    created = await new_profile(client, auth, "Newbie", referral_code=root["profile"]["referral_code"])
    newbie_id = created["profile"]["id"]
    assert created["profile"]["is_active"] is False
    assert created["placed"] is False
    assert created["placement_message"] == "Awaiting admin activation"

    r = await client.get("/api/v1/orders/me", headers=acting(auth, created))
    assert r.status_code == 403

    r = await client.get("/api/v1/admin/users/pending", headers=root_headers)
    pending = r.json()
    assert [u["id"] for u in pending] == [newbie_id]
    assert pending[0]["pending_referral_code"] == root["profile"]["referral_code"]

    r = await client.post(f"/api/v1/admin/users/{newbie_id}/activate", headers=root_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["placed"] is True
    assert body["placement_error"] is None
    assert body["user"]["is_active"] is True
    assert body["user"]["referred_by_id"] == root["profile"]["id"]
    assert body["user"]["pending_referral_code"] is None
    assert body["user"]["activated_by_id"] == root["profile"]["id"]

    r = await client.get("/api/v1/orders/me", headers=acting(auth, created))
    assert r.status_code == 200

    r = await client.post(f"/api/v1/admin/users/{newbie_id}/activate", headers=root_headers)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "USER_ALREADY_ACTIVE"


@pytest.mark.asyncio
async def test_activation_reports_failed_placement_and_stays_active(client, monkeypatch):
    monkeypatch.setattr(settings, "REQUIRE_PROFILE_ACTIVATION", True)

    root_auth = await login(client, SUPER_ADMIN)
    root = await new_profile(client, root_auth, "Root")
    root_headers = acting(root_auth, root)

    monkeypatch.setattr(settings, "REQUIRE_PROFILE_ACTIVATION", False)
    sponsor_auth = await login(client, "sponsor@example.com")
    sponsor = await new_profile(client, sponsor_auth, "Sponsor")
    monkeypatch.setattr(settings, "REQUIRE_PROFILE_ACTIVATION", True)

    auth = await login(client, "newbie@example.com")
    created = await new_profile(client, auth, "Newbie", referral_code=sponsor["profile"]["referral_code"])
    newbie_id = created["profile"]["id"]

    # the sponsor leaves before the newcomer is activated
    r = await client.post(f"/api/v1/admin/users/{sponsor['profile']['id']}/deactivate", headers=root_headers)
    assert r.status_code == 200, r.text

    r = await client.post(f"/api/v1/admin/users/{newbie_id}/activate", headers=root_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["placed"] is False
    assert "placement failed" in body["message"]
    assert body["user"]["is_active"] is True
    assert body["user"]["referred_by_id"] is None
    assert body["user"]["pending_referral_code"] == sponsor["profile"]["referral_code"]


@pytest.mark.asyncio
async def test_deactivation_blocks_profile_and_spares_super_admin(client):
    root_auth = await login(client, SUPER_ADMIN)
    root = await new_profile(client, root_auth, "Root")
    root_headers = acting(root_auth, root)

    auth = await login(client, "member@example.com")
    member = await new_profile(client, auth, "Member")
    member_id = member["profile"]["id"]

    r = await client.post(f"/api/v1/admin/users/{member_id}/deactivate", headers=root_headers)
    assert r.status_code == 200, r.text
    assert r.json()["is_active"] is False

    r = await client.get("/api/v1/orders/me", headers=acting(auth, member))
    assert r.status_code == 403

    r = await client.post(f"/api/v1/admin/users/{member_id}/deactivate", headers=root_headers)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "USER_ALREADY_INACTIVE"

    # an inactive member's code no longer sponsors anyone
    other = await login(client, "other@example.com")
    r = await client.post(
        "/api/v1/auth/profiles",
        json={"name": "Other", "referral_code": member["profile"]["referral_code"]},
        headers=other,
    )
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "INVALID_REFERRAL_CODE"

    r = await client.post(f"/api/v1/admin/users/{root['profile']['id']}/deactivate", headers=root_headers)
    assert r.status_code == 403
    assert r.json()["detail"]["error"] == "SUPER_ADMIN_PROTECTED"

    r = await client.post(
        "/api/v1/admin/users/00000000-0000-0000-0000-000000000000/activate", headers=root_headers
    )
    assert r.status_code == 404

    r = await client.post(f"/api/v1/admin/users/{member_id}/activate", headers=root_headers)
    assert r.status_code == 200
    assert r.json()["placed"] is False
    assert r.json()["message"] == "User activated"


@pytest.mark.asyncio
async def test_points_discount_and_redemption_at_checkout(client):
    admin, admin_headers, product = await admin_with_product(client)

    auth = await login(client, "buyer@example.com")
    buyer = await new_profile(client, auth, "Buyer")
    headers = acting(auth, buyer)

    r = await client.post("/api/v1/orders", json={"product_id": product["id"], "quantity": 5}, headers=headers)
    r = await client.post(f"/api/v1/orders/{r.json()['id']}/approve", headers=admin_headers)
    assert r.status_code == 200, r.text

    r = await client.get("/api/v1/points", headers=headers)
    assert r.json()["total_points"] == 15
    assert Decimal(r.json()["point_value"]) == Decimal("0.01")

    r = await client.post("/api/v1/points/calculate-discount", json={"points": 10, "subtotal": "100.00"}, headers=headers)
    assert r.status_code == 200, r.text
    quote = r.json()
    assert Decimal(quote["discount"]) == Decimal("0.10")
    assert Decimal(quote["final_total"]) == Decimal("99.90")
    assert quote["available_points"] == 15

    r = await client.post("/api/v1/points/calculate-discount", json={"points": 50, "subtotal": "100.00"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "INSUFFICIENT_POINTS"

    r = await client.post(
        "/api/v1/orders",
        json={"product_id": product["id"], "quantity": 1, "points_to_redeem": 100},
        headers=headers,
    )
    assert r.status_code == 400

    r = await client.post(
        "/api/v1/orders",
        json={"product_id": product["id"], "quantity": 1, "points_to_redeem": 10},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    order = r.json()
    assert order["points_redeemed"] == 10
    assert Decimal(order["discount_amount"]) == Decimal("0.10")
    assert Decimal(order["total_price"]) == Decimal("99.90")

    r = await client.get("/api/v1/points", headers=headers)
    assert r.json()["total_points"] == 5

    r = await client.post(f"/api/v1/orders/{order['id']}/reject", headers=admin_headers)
    assert r.status_code == 200

    r = await client.get("/api/v1/points", headers=headers)
    assert r.json()["total_points"] == 15

    r = await client.get("/api/v1/orders/me", headers=headers)
    assert len(r.json()) == 2


@pytest.mark.asyncio
async def test_categories_list_active_products_only(client):
    admin, headers, product = await admin_with_product(client)

    for name, category in [("Honey", "pantry"), ("Soap", "care"), ("Jam", "pantry")]:
        r = await client.post(
            "/api/v1/products",
            json={"name": name, "price": "10.00", "category": category},
            headers=headers,
        )
        assert r.status_code == 201, r.text
        if name == "Soap":
            soap_id = r.json()["id"]

    r = await client.get("/api/v1/products/meta/categories")
    assert r.status_code == 200
    assert r.json() == ["care", "general", "pantry"]

    r = await client.delete(f"/api/v1/products/{soap_id}", headers=headers)
    assert r.status_code == 204

    r = await client.get("/api/v1/products/meta/categories")
    assert r.json() == ["general", "pantry"]
