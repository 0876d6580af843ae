"""
Field mapping from WooCommerce / WordPress REST records to feed rows.

Each mapping is a table of ``column -> getter(record)``. Mappers never drop
records: a missing value becomes an empty cell, so a batch of N source
records always yields N rows and an empty batch still means "no more data".
"""

from typing import Any, Callable, Dict, List, Optional


FieldMap = Dict[str, Callable[[Dict[str, Any]], Any]]


def first_non_empty(*values: Any, default: Any = "") -> Any:
    """Return the first value that is not None, empty string or empty container."""
    for value in values:
        if value is None:
            continue
        if isinstance(value, (str, list, dict, tuple)) and len(value) == 0:
            continue
        return value
    return default


def map_record(record: Dict[str, Any], field_map: FieldMap) -> Dict[str, Any]:
    """Apply a field table to one record, preserving column order."""
    return {column: getter(record) for column, getter in field_map.items()}


def _php_list(values: List[Any]) -> str:
    """Render a list the way the catalog expects list-valued review fields."""
    return "['" + "','".join(str(v) for v in values) + "']"


def _rendered(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("rendered", "") or ""
    return value or ""


PROMOTION_FIELDS: FieldMap = {
    "retailer_id": lambda c: c.get("id", ""),
    "title": lambda c: first_non_empty(c.get("code"), c.get("description")),
}


def coupon_to_promotion(coupon: Dict[str, Any]) -> Dict[str, Any]:
    return map_record(coupon, PROMOTION_FIELDS)


def make_review_mapper(
    store_name: str,
    store_id: str = "",
    store_urls: Optional[List[str]] = None
) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    """
    Build the product review mapper for one store.

    Args:
        store_name: Store display name
        store_id: Merchant settings ID
        store_urls: Shop page URLs

    Returns:
        Function mapping a WooCommerce product review to a feed row
    """
    urls = store_urls or []

    fields: FieldMap = {
        "aggregator": lambda r: "woocommerce",
        "store.name": lambda r: store_name,
        "store.id": lambda r: store_id,
        "store.storeUrls": lambda r: _php_list(urls),
        "review_id": lambda r: r.get("id", ""),
        "rating": lambda r: r.get("rating", ""),
        "title": lambda r: None,
        "content": lambda r: r.get("review", ""),
        "created_at": lambda r: first_non_empty(r.get("date_created"), r.get("date_created_gmt")),
        "reviewer.name": lambda r: r.get("reviewer", ""),
        "reviewer.reviewerID": lambda r: r.get("reviewer_id", 0),
        "reviewer.isAnonymous": lambda r: "true" if not r.get("reviewer_id") else "false",
        "product.name": lambda r: first_non_empty(r.get("product_name"), str(r.get("product_id", ""))),
        "product.url": lambda r: r.get("product_permalink", ""),
        "product.productIdentifiers.skus": lambda r: _php_list(
            [r["product_sku"]] if r.get("product_sku") else []
        ),
    }

    def mapper(review: Dict[str, Any]) -> Dict[str, Any]:
        return map_record(review, fields)

    return mapper


def _zone_locations(zone: Dict[str, Any]) -> List[Dict[str, Any]]:
    countries: Dict[str, Dict[str, Any]] = {}
    for location in zone.get("locations") or []:
        code = location.get("code", "")
        location_type = location.get("type")
        if location_type == "country":
            entry = countries.setdefault(code, {"country": code, "states": [], "applies_to_entire_country": False})
            entry["applies_to_entire_country"] = True
        elif location_type == "state" and ":" in code:
            country, state = code.split(":", 1)
            entry = countries.setdefault(country, {"country": country, "states": [], "applies_to_entire_country": False})
            if state not in entry["states"]:
                entry["states"].append(state)
    return list(countries.values())


def _zone_rates(zone: Dict[str, Any]) -> List[Dict[str, Any]]:
    rates = []
    for method in zone.get("methods") or []:
        if not method.get("enabled", True):
            continue
        settings = method.get("settings") or {}
        cost = (settings.get("cost") or {}).get("value", "")
        rates.append({
            "id": method.get("instance_id"),
            "method": method.get("method_id", ""),
            "name": first_non_empty(method.get("title"), method.get("method_title")),
            "cost": cost,
        })
    return rates


SHIPPING_PROFILE_FIELDS: FieldMap = {
    "shipping_profile_id": lambda z: z.get("id", ""),
    "name": lambda z: z.get("name", ""),
    "shipping_zones": _zone_locations,
    "shipping_rates": _zone_rates,
    "applicable_products": lambda z: [],
    "applies_to_all_products": lambda z: True,
    # Zone 0 is WooCommerce's "Locations not covered by your other zones"
    "applies_to_rest_of_world": lambda z: z.get("id") == 0,
    "is_active": lambda z: any(m.get("enabled", True) for m in z.get("methods") or []),
}


def shipping_zone_to_profile(zone: Dict[str, Any]) -> Dict[str, Any]:
    return map_record(zone, SHIPPING_PROFILE_FIELDS)


NAVIGATION_MENU_FIELDS: FieldMap = {
    "id": lambda m: m.get("id", ""),
    "title": lambda m: _rendered(m.get("title")),
    "url": lambda m: m.get("url", ""),
    "parent_id": lambda m: m.get("parent", 0),
    "position": lambda m: m.get("menu_order", 0),
    "menu_id": lambda m: first_non_empty(m.get("menus"), m.get("menu_id"), default=0),
}


def menu_item_to_entry(item: Dict[str, Any]) -> Dict[str, Any]:
    return map_record(item, NAVIGATION_MENU_FIELDS)
