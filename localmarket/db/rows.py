"""Conversion des lignes asyncpg en modèles."""
from typing import Any, Dict

from localmarket.models import Product, Shop

# Colonnes boutique communes à toutes les requêtes ; la position est lue
# depuis la colonne geography `location`.
SHOP_COLUMNS = """
    s.id, s.seller_id, s.name, s.category,
    s.opening_time, s.closing_time, s.is_open, s.is_open_override,
    s.description, s.image_url,
    s.town_village, s.mandal, s.district, s.state,
    ST_Y(s.location::geometry) AS latitude,
    ST_X(s.location::geometry) AS longitude
"""

PRODUCT_COLUMNS = """
    p.id AS product_id, p.shop_id AS product_shop_id, p.name AS product_name,
    p.category AS product_category, p.price AS product_price,
    p.is_available AS product_is_available, p.description AS product_description,
    p.image_url AS product_image_url, p.last_updated AS product_last_updated
"""

_SHOP_FIELDS = (
    "id", "seller_id", "name", "category", "latitude", "longitude",
    "opening_time", "closing_time", "is_open_override", "description",
    "image_url", "town_village", "mandal", "district", "state",
)


def shop_from_row(row: Dict[str, Any]) -> Shop:
    """Construit une Shop ; un is_open NULL en base vaut True (défaut de la colonne)."""
    data = {field: row.get(field) for field in _SHOP_FIELDS}
    data["is_open"] = row.get("is_open") is not False
    return Shop(**data)


def product_from_row(row: Dict[str, Any], prefix: str = "product_") -> Product:
    """Construit un Product à partir de colonnes préfixées (jointure) ou non."""
    def col(name: str) -> Any:
        return row.get(f"{prefix}{name}")

    price = col("price")
    return Product(
        id=col("id"),
        shop_id=col("shop_id"),
        name=col("name"),
        category=col("category"),
        price=float(price) if price is not None else None,
        is_available=col("is_available") is not False,
        description=col("description"),
        image_url=col("image_url"),
        last_updated=col("last_updated"),
    )
