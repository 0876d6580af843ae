"""Tests for REST record to feed row mapping."""

from feedsync.core.feed.adapters import (
    coupon_to_promotion,
    first_non_empty,
    make_review_mapper,
    menu_item_to_entry,
    shipping_zone_to_profile,
)


def test_first_non_empty():
    assert first_non_empty(None, "", [], "x") == "x"
    assert first_non_empty(0, "x") == 0
    assert first_non_empty(None, default="-") == "-"


def test_coupon_falls_back_to_description():
    assert coupon_to_promotion({"id": 3, "code": "", "description": "Free shipping"}) == {
        "retailer_id": 3,
        "title": "Free shipping",
    }


def test_review_row():
    mapper = make_review_mapper("Demo Store", "ms-1", ["https://shop.example.com/shop/"])

    row = mapper({
        "id": 91,
        "rating": 4,
        "review": "<p>Great shirt</p>",
        "date_created": "2024-05-01T10:00:00",
        "reviewer": "Ana",
        "reviewer_id": 0,
        "product_id": 15,
        "product_name": "T-Shirt",
        "product_permalink": "https://shop.example.com/product/t-shirt/",
        "product_sku": "TS-1",
    })

    assert list(row) == [
        "aggregator", "store.name", "store.id", "store.storeUrls", "review_id", "rating",
        "title", "content", "created_at", "reviewer.name", "reviewer.reviewerID",
        "reviewer.isAnonymous", "product.name", "product.url", "product.productIdentifiers.skus",
    ]
    assert row["aggregator"] == "woocommerce"
    assert row["store.storeUrls"] == "['https://shop.example.com/shop/']"
    assert row["title"] is None
    assert row["reviewer.isAnonymous"] == "true"
    assert row["product.productIdentifiers.skus"] == "['TS-1']"


def test_review_without_sku_or_name():
    row = make_review_mapper("Demo Store")({"id": 1, "product_id": 15, "reviewer_id": 7})

    assert row["product.name"] == "15"
    assert row["product.productIdentifiers.skus"] == "['']"
    assert row["reviewer.isAnonymous"] == "false"


def test_shipping_profile():
    profile = shipping_zone_to_profile({
        "id": 2,
        "name": "North America",
        "locations": [
            {"code": "US:CA", "type": "state"},
            {"code": "US:NY", "type": "state"},
            {"code": "CA", "type": "country"},
            {"code": "90210", "type": "postcode"},
        ],
        "methods": [
            {
                "instance_id": 5,
                "method_id": "flat_rate",
                "title": "Flat rate",
                "enabled": True,
                "settings": {"cost": {"value": "9.99"}},
            },
            {"instance_id": 6, "method_id": "local_pickup", "enabled": False},
        ],
    })

    assert profile["shipping_zones"] == [
        {"country": "US", "states": ["CA", "NY"], "applies_to_entire_country": False},
        {"country": "CA", "states": [], "applies_to_entire_country": True},
    ]
    assert profile["shipping_rates"] == [
        {"id": 5, "method": "flat_rate", "name": "Flat rate", "cost": "9.99"}
    ]
    assert profile["applies_to_rest_of_world"] is False
    assert profile["is_active"] is True


def test_menu_entry():
    entry = menu_item_to_entry({
        "id": 12,
        "title": {"rendered": "Shop"},
        "url": "https://shop.example.com/shop/",
        "parent": 0,
        "menu_order": 2,
        "menus": 4,
    })

    assert entry == {
        "id": 12,
        "title": "Shop",
        "url": "https://shop.example.com/shop/",
        "parent_id": 0,
        "position": 2,
        "menu_id": 4,
    }
