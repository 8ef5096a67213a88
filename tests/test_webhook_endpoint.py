from src.services.webhook_service import webhook_service


def test_verify_returns_challenge_as_plain_text(client):
    r = client.get(
        "/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "test-verify-token", "hub.challenge": "1158201444"},
    )
    assert r.status_code == 200
    assert r.text == "1158201444"
    assert r.headers["content-type"].startswith("text/plain")


def test_verify_rejects_wrong_token(client):
    r = client.get(
        "/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "abc"},
    )
    assert r.status_code == 403
    assert r.json()["request_id"]


def test_verify_rejects_wrong_mode(client):
    r = client.get(
        "/webhook",
        params={"hub.mode": "unsubscribe", "hub.verify_token": "test-verify-token", "hub.challenge": "abc"},
    )
    assert r.status_code == 403


def test_receive_acknowledges_and_processes_in_background(client, monkeypatch):
    received = []

    async def _fake_handle_payload(body):
        received.append(body)

    monkeypatch.setattr(webhook_service, "handle_payload", _fake_handle_payload)

    body = {"object": "whatsapp_business_account", "entry": []}
    r = client.post("/webhook", json=body)

    assert r.status_code == 200
    assert r.text == "EVENT_RECEIVED"
    # TestClient runs background tasks before returning.
    assert received == [body]


def test_receive_acknowledges_invalid_json_without_processing(client, monkeypatch):
    received = []

    async def _fake_handle_payload(body):
        received.append(body)

    monkeypatch.setattr(webhook_service, "handle_payload", _fake_handle_payload)

    r = client.post("/webhook", content=b"{not json", headers={"content-type": "application/json"})

    assert r.status_code == 200
    assert r.text == "EVENT_RECEIVED"
    assert received == []
