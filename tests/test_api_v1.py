import uuid

from conftest import auth_headers, make_token
from startronics.domain.lifecycle.statuses import Role


def _create_request(client, customer) -> dict:
    response = client.post(
        "/v1/me/repair-requests",
        json={"device_type": "laptop", "issue_description": "Hinge snapped", "urgency": "low"},
        headers=auth_headers(customer.user_id),
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_v1_requires_bearer_token(client):
    response = client.get("/v1/me/repair-requests")
    assert response.status_code == 401
    assert response.json()["detail"] == "Please login"
    assert response.headers["WWW-Authenticate"] == "Bearer"

    expired = make_token(uuid.uuid4(), expires_in=-60)
    response = client.get("/v1/me/repair-requests", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401

    wrong_audience = make_token(uuid.uuid4(), aud="anon")
    response = client.get("/v1/me/repair-requests", headers={"Authorization": f"Bearer {wrong_audience}"})
    assert response.status_code == 401


def test_profile_less_subject_is_customer(client):
    response = client.get("/v1/me/dashboard", headers=auth_headers(uuid.uuid4()))
    assert response.status_code == 200
    assert response.json() == {"pending_requests": 0, "completed_requests": 0, "bills_awaiting_payment": 0}


def test_wrong_role_gets_403(client, make_actor):
    customer = make_actor(Role.customer)
    technician = make_actor(Role.technician)

    response = client.get("/v1/admin/requests", headers=auth_headers(customer.user_id))
    assert response.status_code == 403
    assert response.json()["detail"] == "Access denied"

    response = client.get("/v1/me/overview", headers=auth_headers(technician.user_id))
    assert response.status_code == 403


def test_full_repair_flow_over_http(client, make_actor):
    customer = make_actor(Role.customer, "Asha")
    admin = make_actor(Role.admin, "Ops")
    technician = make_actor(Role.technician, "Ravi")

    created = _create_request(client, customer)
    request_id = created["id"]

    technicians = client.get("/v1/admin/technicians", headers=auth_headers(admin.user_id)).json()
    assert [item["id"] for item in technicians] == [str(technician.user_id)]

    approved = client.post(
        f"/v1/admin/requests/{request_id}/approve",
        json={"admin_notes": "ok", "technician_id": str(technician.user_id)},
        headers=auth_headers(admin.user_id),
    )
    assert approved.status_code == 200, approved.text
    assert approved.json()["status"] == "approved"

    accepted = client.post(
        f"/v1/technician/requests/{request_id}/accept", headers=auth_headers(technician.user_id)
    )
    assert accepted.json()["status"] == "accepted"

    started = client.post(
        f"/v1/technician/requests/{request_id}/start", headers=auth_headers(technician.user_id)
    )
    assert started.json()["status"] == "in_progress"

    bill = client.post(
        f"/v1/technician/requests/{request_id}/bill",
        json={"items": [{"description": "Hinge", "amount": "100.00"}, {"description": "Labor", "amount": 50}]},
        headers=auth_headers(technician.user_id),
    )
    assert bill.status_code == 201, bill.text
    quote = bill.json()
    assert quote["amount"] == "150.00"
    assert quote["status"] == "sent"
    assert len(quote["breakdown"]["items"]) == 2

    pending_quotes = client.get("/v1/me/quotes?status=sent", headers=auth_headers(customer.user_id)).json()
    assert [item["id"] for item in pending_quotes] == [quote["id"]]

    checkout = {
        "amount": "150.00",
        "currency": "INR",
        "method": "card",
        "card": {
            "card_number": "4111111111111111",
            "holder_name": "Asha",
            "expiry": "09/29",
            "cvv": "123",
        },
        "save_card": True,
    }
    paid = client.post(
        f"/v1/checkout/{quote['id']}/confirm", json=checkout, headers=auth_headers(customer.user_id)
    )
    assert paid.status_code == 201, paid.text
    assert paid.json()["payment"]["status"] == "succeeded"
    assert paid.json()["saved_card"]["card_last4"] == "1111"

    again = client.post(
        f"/v1/checkout/{quote['id']}/confirm", json=checkout, headers=auth_headers(customer.user_id)
    )
    assert again.status_code == 409

    summary = client.get("/v1/technician/summary", headers=auth_headers(technician.user_id)).json()
    assert summary["bills_paid"] == 1

    story = client.post(
        "/v1/stories",
        json={"quote_id": quote["id"], "rating": 5, "story": "Hinge works like new"},
        headers=auth_headers(customer.user_id),
    )
    assert story.status_code == 201, story.text

    featured = client.get("/v1/stories/featured")
    assert featured.status_code == 200
    assert [item["story"] for item in featured.json()] == ["Hinge works like new"]

    overview = client.get("/v1/me/overview", headers=auth_headers(customer.user_id)).json()
    assert overview["dashboard"]["completed_requests"] == 1
    assert overview["payments"][0]["amount"] == "150.00"


def test_claim_conflict_over_http(client, make_actor):
    customer = make_actor(Role.customer)
    first = make_actor(Role.technician)
    second = make_actor(Role.technician)
    created = _create_request(client, customer)

    open_pool = client.get("/v1/technician/requests/open", headers=auth_headers(first.user_id)).json()
    assert [item["id"] for item in open_pool] == [created["id"]]

    won = client.post(f"/v1/technician/requests/{created['id']}/claim", headers=auth_headers(first.user_id))
    assert won.status_code == 200
    assert won.json()["assigned_technician_id"] == str(first.user_id)

    lost = client.post(f"/v1/technician/requests/{created['id']}/claim", headers=auth_headers(second.user_id))
    assert lost.status_code == 409
    assert lost.json()["title"] == "Claim Conflict"


def test_customer_request_edit_delete_and_cards(client, make_actor):
    customer = make_actor(Role.customer)
    created = _create_request(client, customer)
    headers = auth_headers(customer.user_id)

    edited = client.patch(
        f"/v1/me/repair-requests/{created['id']}", json={"urgency": "high"}, headers=headers
    )
    assert edited.status_code == 200
    assert edited.json()["urgency"] == "high"

    deleted = client.delete(f"/v1/me/repair-requests/{created['id']}", headers=headers)
    assert deleted.status_code == 204
    assert client.get("/v1/me/repair-requests", headers=headers).json() == []

    bad_card = client.post(
        "/v1/me/cards", json={"card_number": "1234", "holder_name": "Asha", "expiry": "01/30"}, headers=headers
    )
    assert bad_card.status_code == 400
    assert bad_card.json()["detail"] == "Please enter a valid 16-digit card number"

    first = client.post(
        "/v1/me/cards",
        json={"card_number": "4111111111111111", "holder_name": "Asha", "expiry": "01/30"},
        headers=headers,
    ).json()
    second = client.post(
        "/v1/me/cards",
        json={"card_number": "5500000000000004", "holder_name": "Asha", "expiry": "01/31"},
        headers=headers,
    ).json()
    chosen = client.post(f"/v1/me/cards/{second['id']}/default", headers=headers)
    assert chosen.status_code == 200
    cards = client.get("/v1/me/cards", headers=headers).json()
    assert [card["id"] for card in cards] == [second["id"], first["id"]]
    assert [card["is_default"] for card in cards] == [True, False]

    assert client.delete(f"/v1/me/cards/{second['id']}", headers=headers).status_code == 204
    cards = client.get("/v1/me/cards", headers=headers).json()
    assert cards[0]["id"] == first["id"]
    assert cards[0]["is_default"] is True


def test_v1_body_validation_is_422(client, make_actor):
    customer = make_actor(Role.customer)
    response = client.post(
        "/v1/me/repair-requests", json={"device_type": ""}, headers=auth_headers(customer.user_id)
    )
    assert response.status_code == 422
    assert response.json()["type"].endswith("validation-error")
