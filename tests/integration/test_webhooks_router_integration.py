import json
import time

from clubify_checkout.webhooks.signature import sign_payload

URL = "/api/v1/webhooks/clubify"


def _signed(settings, event="order.paid", data=None, timestamp=None, secret=None):
    ts = int(time.time()) if timestamp is None else timestamp
    body = json.dumps({"event": event, "data": data or {"order_id": "o1"}, "timestamp": ts, "id": "evt_1"}).encode()
    headers = {
        "Content-Type": "application/json",
        "X-Clubify-Signature": sign_payload(body, secret or settings.webhook_secret),
        "X-Clubify-Timestamp": str(ts),
    }
    return body, headers


def test_valid_webhook_is_dispatched(client, sdk, settings):
    received = []
    sdk.webhooks.register("order.paid", received.append)

    body, headers = _signed(settings)
    r = client.post(URL, content=body, headers=headers)

    assert r.status_code == 200
    assert r.json() == {"status": "ok", "event": "order.paid", "id": "evt_1", "handled": 1}
    assert [e.data["order_id"] for e in received] == ["o1"]


def test_invalid_signature_is_400(client, settings):
    body, headers = _signed(settings, secret="wrong-secret")
    r = client.post(URL, content=body, headers=headers)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid Webhook", "message": "Signature du webhook invalide"}


def test_tampered_body_is_400(client, settings):
    body, headers = _signed(settings)
    tampered = body.replace(b"o1", b"o2")
    r = client.post(URL, content=tampered, headers=headers)
    assert r.status_code == 400


def test_replayed_webhook_is_400(client, settings):
    body, headers = _signed(settings, timestamp=int(time.time()) - 3600)
    r = client.post(URL, content=body, headers=headers)
    assert r.status_code == 400
    assert "expiré" in r.json()["message"]


def test_missing_signature_is_400(client, settings):
    body, headers = _signed(settings)
    headers.pop("X-Clubify-Signature")
    r = client.post(URL, content=body, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid Webhook"


def test_webhook_invalidates_cart_cache(client, cache, settings):
    cache.set("cart_c9", {"id": "c9"})
    body, headers = _signed(settings, event="cart.updated", data={"cart_id": "c9"})
    r = client.post(URL, content=body, headers=headers)
    assert r.status_code == 200
    assert cache.get("cart_c9") is None


def test_signature_with_high_bit_flip_is_400(client, settings):
    body, headers = _signed(settings)
    signature = headers.pop("X-Clubify-Signature")
    tampered = signature[:-1] + chr(ord(signature[-1]) ^ 0x80)
    # valeur d'en-tête hors ASCII, transmise en latin-1
    headers["X-Clubify-Signature"] = tampered.encode("latin-1")
    r = client.post(URL, content=body, headers=headers)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid Webhook", "message": "Signature du webhook invalide"}


def test_nan_timestamp_is_400(client, settings):
    body, headers = _signed(settings)
    headers["X-Clubify-Timestamp"] = "nan"
    r = client.post(URL, content=body, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid Webhook"
