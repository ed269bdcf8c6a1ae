"""Index géographique : candidats dans un rayon autour d'un point."""
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from localmarket.config import settings
from localmarket.db.rows import PRODUCT_COLUMNS, SHOP_COLUMNS, product_from_row, shop_from_row
from localmarket.logger import logger
from localmarket.models import Coordinate, GeoCandidate, Product, SearchTarget, Shop
from localmarket.scoring.distance import haversine_m


def clamp_radius(
    radius_m: float,
    min_radius: Optional[float] = None,
    max_radius: Optional[float] = None,
) -> float:
    """Ramène le rayon dans [MIN_RADIUS_M, MAX_RADIUS_M] sans le rejeter."""
    low = settings.MIN_RADIUS_M if min_radius is None else min_radius
    high = settings.MAX_RADIUS_M if max_radius is None else max_radius
    return max(low, min(high, radius_m))


def _distance_order(candidate: GeoCandidate):
    entity_id = candidate.product.id if candidate.product else candidate.shop.id
    return (candidate.distance_m, entity_id)


class GeoIndex(ABC):
    """
    Contrat commun des index géographiques.

    Les candidats sont triés par distance croissante puis par identifiant :
    c'est l'ordre d'entrée que le classement conserve en cas d'égalité.
    """

    async def within_radius(
        self,
        origin: Coordinate,
        radius_m: float,
        target: SearchTarget,
    ) -> List[GeoCandidate]:
        radius = clamp_radius(radius_m)
        if radius != radius_m:
            logger.debug("Radius {asked} clamped to {radius}", asked=radius_m, radius=radius)
        return await self._query(origin, radius, target)

    @abstractmethod
    async def _query(
        self,
        origin: Coordinate,
        radius_m: float,
        target: SearchTarget,
    ) -> List[GeoCandidate]:
        """Interroge le stockage avec un rayon déjà borné."""


class InMemoryGeoIndex(GeoIndex):
    """Index en mémoire, distance haversine. Utilisé pour les jeux de données
    chargés localement et les tests."""

    def __init__(self, shops: Iterable[Shop] = (), products: Iterable[Product] = ()):
        self.shops = {shop.id: shop for shop in shops}
        self.products = list(products)

    def add_shop(self, shop: Shop):
        self.shops[shop.id] = shop

    def add_product(self, product: Product):
        self.products.append(product)

    async def _query(
        self,
        origin: Coordinate,
        radius_m: float,
        target: SearchTarget,
    ) -> List[GeoCandidate]:
        distances = {
            shop.id: haversine_m(origin.latitude, origin.longitude, shop.latitude, shop.longitude)
            for shop in self.shops.values()
        }

        candidates: List[GeoCandidate] = []
        if target is SearchTarget.SHOPS:
            for shop in self.shops.values():
                if distances[shop.id] <= radius_m:
                    candidates.append(GeoCandidate(shop=shop, distance_m=distances[shop.id]))
        else:
            for product in self.products:
                shop = self.shops.get(product.shop_id)
                if shop is None:
                    # Produit orphelin : pas de position, donc pas de résultat
                    logger.warning("Product {pid} has no owning shop", pid=product.id)
                    continue
                if distances[shop.id] <= radius_m:
                    candidates.append(
                        GeoCandidate(shop=shop, product=product, distance_m=distances[shop.id])
                    )

        candidates.sort(key=_distance_order)
        return candidates


class PostgresGeoIndex(GeoIndex):
    """Index PostGIS : ST_DWithin / ST_Distance sur le type geography."""

    SHOPS_SQL = f"""
        SELECT {SHOP_COLUMNS},
            ST_Distance(s.location, ST_SetSRID(ST_MakePoint($1, $2), 4326)::geography)
                AS distance_meters
        FROM shops s
        WHERE ST_DWithin(s.location, ST_SetSRID(ST_MakePoint($1, $2), 4326)::geography, $3)
        ORDER BY distance_meters, s.id
    """

    PRODUCTS_SQL = f"""
        SELECT {SHOP_COLUMNS}, {PRODUCT_COLUMNS},
            ST_Distance(s.location, ST_SetSRID(ST_MakePoint($1, $2), 4326)::geography)
                AS distance_meters
        FROM products p
        JOIN shops s ON p.shop_id = s.id
        WHERE ST_DWithin(s.location, ST_SetSRID(ST_MakePoint($1, $2), 4326)::geography, $3)
        ORDER BY distance_meters, p.id
    """

    def __init__(self, db_connector):
        self.db = db_connector

    async def _query(
        self,
        origin: Coordinate,
        radius_m: float,
        target: SearchTarget,
    ) -> List[GeoCandidate]:
        # ST_MakePoint attend (longitude, latitude)
        sql = self.SHOPS_SQL if target is SearchTarget.SHOPS else self.PRODUCTS_SQL
        rows = await self.db.execute_query(sql, origin.longitude, origin.latitude, radius_m)

        candidates = []
        for row in rows:
            product = product_from_row(row) if target is SearchTarget.PRODUCTS else None
            candidates.append(
                GeoCandidate(
                    shop=shop_from_row(row),
                    product=product,
                    distance_m=float(row["distance_meters"]),
                )
            )
        return candidates
