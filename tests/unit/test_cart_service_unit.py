from decimal import Decimal

import pytest

from clubify_checkout.errors import BusinessError, NotFoundError, ValidationError

CART = {"id": "c1", "session_id": "sess-1", "status": "active", "items": []}


def test_find_is_cached(sdk, fake_api):
    fake_api.add("GET", "/cart/c1", json={"data": CART, "success": True})

    assert sdk.cart.find("c1") == CART
    assert sdk.cart.find("c1") == CART
    assert fake_api.count("GET", "/cart/c1") == 1


def test_find_missing_returns_none_and_is_not_cached(sdk, fake_api):
    assert sdk.cart.find("ghost") is None
    assert sdk.cart.find("ghost") is None
    assert fake_api.count("GET", "/cart/ghost") == 2


def test_find_by_session_uses_query(sdk, fake_api):
    fake_api.add("GET", "/cart", json={"data": [CART]})
    assert sdk.cart.find_by_session("sess-1") == CART
    assert fake_api.requests[0].url.params["session_id"] == "sess-1"


def test_create_sends_validated_payload(sdk, fake_api):
    fake_api.add("POST", "/cart", status=201, json={"data": CART})
    created = sdk.cart.create("sess-1", {"currency": "usd"})

    assert created["id"] == "c1"
    method, path, body = fake_api.calls[0]
    assert body["session_id"] == "sess-1"
    assert body["currency"] == "USD"
    assert body["status"] == "active"


def test_add_item_posts_new_line(sdk, fake_api):
    fake_api.add("GET", "/cart/c1/items", json={"data": []})
    fake_api.add("POST", "/cart/c1/items", json={"data": CART})

    sdk.cart.add_item("c1", {"product_id": "p1", "name": "Camiseta", "price": "99.90", "quantity": 2})
    method, path, body = fake_api.calls[-1]
    assert (method, path) == ("POST", "/api/v1/cart/c1/items")
    assert body["product_id"] == "p1"
    assert Decimal(body["price"]) == Decimal("99.90")


def test_add_item_merges_existing_product(sdk, fake_api):
    fake_api.add("GET", "/cart/c1/items", json={"data": [{"id": "i1", "product_id": "p1", "quantity": 1}]})
    fake_api.add("PUT", "/cart/c1/items/i1", json={"data": CART})

    sdk.cart.add_item("c1", {"product_id": "p1", "name": "Camiseta", "price": "10", "quantity": 2})
    method, path, body = fake_api.calls[-1]
    assert (method, path, body) == ("PUT", "/api/v1/cart/c1/items/i1", {"quantity": 3})
    assert fake_api.count("POST", "/cart/c1/items") == 0


def test_add_invalid_item_makes_no_call(sdk, fake_api):
    with pytest.raises(ValidationError):
        sdk.cart.add_item("c1", {"product_id": "p1", "name": "Camiseta", "price": "-1"})
    assert fake_api.calls == []


@pytest.mark.parametrize("quantity", [0, 1000])
def test_update_item_checks_quantity(sdk, fake_api, quantity):
    with pytest.raises(ValidationError):
        sdk.cart.update_item("c1", "i1", quantity)
    assert fake_api.calls == []


def test_mutation_invalidates_cache(sdk, fake_api):
    fake_api.add("GET", "/cart/c1", json=CART)
    fake_api.add("POST", "/cart/c1/promotions", json={**CART, "coupon": {"code": "PROMO"}})

    sdk.cart.find("c1")
    sdk.cart.apply_coupon("c1", " PROMO ")
    sdk.cart.find("c1")

    assert fake_api.count("GET", "/cart/c1") == 2
    assert ("POST", "/api/v1/cart/c1/promotions", {"code": "PROMO"}) in fake_api.calls


def test_empty_coupon_rejected(sdk, fake_api):
    with pytest.raises(ValidationError):
        sdk.cart.apply_coupon("c1", "   ")
    assert fake_api.calls == []


def test_business_error_propagates(sdk, fake_api):
    fake_api.add("POST", "/cart/c1/promotions", status=422, json={"message": "Cupom expirado"})
    with pytest.raises(BusinessError) as exc:
        sdk.cart.apply_coupon("c1", "OLD")
    assert exc.value.message == "Cupom expirado"


def test_lifecycle_endpoints(sdk, fake_api):
    fake_api.add("PUT", "/cart/c1/abandon", json={**CART, "status": "abandoned"})
    fake_api.add("POST", "/cart/c1/convert", json={"order_id": "o1"})
    fake_api.add("PUT", "/cart/c1/shipping", json=CART)

    assert sdk.cart.mark_abandoned("c1")["status"] == "abandoned"
    assert sdk.cart.convert_to_order("c1") == {"order_id": "o1"}
    sdk.cart.update_shipping("c1", {"method": "pac", "amount": "15.90"})
    assert fake_api.calls[-1][2] == {"method": "pac", "amount": "15.90", "address": {}}


def test_duplicate_copies_items_to_new_session(sdk, fake_api):
    fake_api.add("GET", "/cart/c1", json={**CART, "currency": "BRL"})
    fake_api.add("GET", "/cart/c1/items", json=[{"id": "i1", "cart_id": "c1", "product_id": "p1", "quantity": 2}])
    fake_api.add("POST", "/cart", json={"id": "c2"})
    fake_api.add("POST", "/cart/c2/items", json={"id": "c2"})
    fake_api.add("POST", "/cart/c2/calculate", json={"id": "c2", "total": "20.00"})

    result = sdk.cart.duplicate("c1", "sess-2")

    assert result == {"id": "c2", "total": "20.00"}
    create_body = next(body for m, p, body in fake_api.calls if (m, p) == ("POST", "/api/v1/cart"))
    assert create_body["session_id"] == "sess-2"
    assert "id" not in create_body
    item_body = next(body for m, p, body in fake_api.calls if (m, p) == ("POST", "/api/v1/cart/c2/items"))
    assert item_body == {"product_id": "p1", "quantity": 2}


def test_duplicate_missing_cart(sdk):
    with pytest.raises(NotFoundError):
        sdk.cart.duplicate("ghost", "sess-2")


def test_quote_is_local(sdk, fake_api):
    cart = sdk.cart.quote({"session_id": "sess-1", "items": [{"product_id": "p1", "name": "Camiseta", "price": "50", "quantity": 2}]})
    assert cart.totals.total == Decimal("100.00")
    assert fake_api.calls == []


def test_external_invalidation(sdk, cache):
    cache.set("cart_c1", CART)
    cache.set("cart_session_sess-1", CART)
    sdk.cart.invalidate(cart_id="c1", session_id="sess-1")
    assert cache.get("cart_c1") is None
    assert cache.get("cart_session_sess-1") is None


def test_update_invalidates_cached_cart(sdk, fake_api):
    fake_api.add("GET", "/cart/c1", json={"data": CART})
    fake_api.add("PUT", "/cart/c1", json={"data": dict(CART, notes="cadeau")})

    sdk.cart.find("c1")
    updated = sdk.cart.update("c1", {"notes": "cadeau"})

    assert updated["notes"] == "cadeau"
    assert fake_api.calls[-1] == ("PUT", "/api/v1/cart/c1", {"notes": "cadeau"})
    sdk.cart.find("c1")
    assert fake_api.count("GET", "/cart/c1") == 2


def test_update_requires_data(sdk, fake_api):
    with pytest.raises(ValidationError):
        sdk.cart.update("c1", {})
    assert fake_api.calls == []


def test_delete_clears_cart_and_session_cache(sdk, fake_api, cache):
    fake_api.add("GET", "/cart/c1", json={"data": CART})
    fake_api.add("DELETE", "/cart/c1", status=204)
    sdk.cart.find("c1")
    cache.set("cart_session_sess-1", CART)

    assert sdk.cart.delete("c1") is True
    assert cache.get("cart_c1") is None
    assert cache.get("cart_session_sess-1") is None


def test_delete_unknown_cart_returns_false(sdk):
    assert sdk.cart.delete("ghost") is False


def test_quote_merges_duplicate_products(sdk, fake_api):
    cart = sdk.cart.quote({
        "session_id": "sess-1",
        "items": [
            {"product_id": "p1", "name": "Camiseta", "price": "10", "quantity": 1},
            {"product_id": "p2", "name": "Boné", "price": "5", "quantity": 1},
            {"product_id": "p1", "name": "Camiseta", "price": "10", "quantity": 2},
        ],
    })

    assert [(it.product_id, it.quantity) for it in cart.items] == [("p1", 3), ("p2", 1)]
    assert cart.subtotal == Decimal("35.00")
    assert fake_api.calls == []
