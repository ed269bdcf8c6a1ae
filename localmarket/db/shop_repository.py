"""Accès aux boutiques et produits pour les routes vendeur."""
from typing import List, Optional

from localmarket.db.rows import PRODUCT_COLUMNS, SHOP_COLUMNS, product_from_row, shop_from_row
from localmarket.errors import NotFoundError
from localmarket.logger import logger
from localmarket.models import Product, Shop, ShopStatusUpdate


class ShopRepository:
    """Lectures et mises à jour atomiques sur shops/products."""

    def __init__(self, db_connector):
        self.db = db_connector

    async def get_by_seller(self, seller_id: int) -> Optional[Shop]:
        row = await self.db.fetch_one(
            f"SELECT {SHOP_COLUMNS} FROM shops s WHERE s.seller_id = $1",
            seller_id,
        )
        return shop_from_row(row) if row else None

    async def update_status(self, seller_id: int, update: ShopStatusUpdate) -> Shop:
        """
        Met à jour is_open et/ou is_open_override en une seule instruction.

        Lecture et écriture sont atomiques : l'UPDATE ... RETURNING renvoie
        l'état de la ligne tel qu'écrit, sans fenêtre entre les deux.

        Raises:
            NotFoundError: le vendeur n'a pas de boutique
        """
        row = await self.db.fetch_one(
            f"""
            WITH s AS (
                UPDATE shops
                SET is_open = COALESCE($1, is_open),
                    is_open_override = CASE WHEN $2 THEN $3 ELSE is_open_override END
                WHERE seller_id = $4
                RETURNING *
            )
            SELECT {SHOP_COLUMNS} FROM s
            """,
            update.is_open,
            update.sets_override,
            update.is_open_override,
            seller_id,
        )
        if row is None:
            raise NotFoundError("Shop not found for this seller.")

        logger.info(
            "Shop {shop_id} status updated by seller {seller_id}: is_open={is_open}, override={override}",
            shop_id=row["id"], seller_id=seller_id,
            is_open=row["is_open"], override=row["is_open_override"],
        )
        return shop_from_row(row)

    async def list_available_products(self, shop_id: int) -> List[Product]:
        rows = await self.db.execute_query(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            WHERE p.shop_id = $1 AND p.is_available = true
            ORDER BY p.name
            """,
            shop_id,
        )
        return [product_from_row(row) for row in rows]

    async def list_seller_products(self, seller_id: int) -> List[Product]:
        """
        Tous les produits de la boutique du vendeur, disponibles ou non, triés par nom.

        Raises:
            NotFoundError: le vendeur n'a pas de boutique
        """
        shop = await self.get_by_seller(seller_id)
        if shop is None:
            raise NotFoundError("Shop not found for this seller.")

        rows = await self.db.execute_query(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            WHERE p.shop_id = $1
            ORDER BY p.name
            """,
            shop.id,
        )
        return [product_from_row(row) for row in rows]

    async def set_product_availability(
        self, seller_id: int, product_id: int, is_available: bool
    ) -> Product:
        """
        Bascule la disponibilité d'un produit appartenant au vendeur.

        Le contrôle de propriété est fait dans le même UPDATE (jointure shops).

        Raises:
            NotFoundError: produit inexistant ou appartenant à une autre boutique
        """
        row = await self.db.fetch_one(
            f"""
            WITH p AS (
                UPDATE products
                SET is_available = $1, last_updated = NOW()
                FROM shops s
                WHERE products.shop_id = s.id AND products.id = $2 AND s.seller_id = $3
                RETURNING products.*
            )
            SELECT {PRODUCT_COLUMNS} FROM p
            """,
            is_available,
            product_id,
            seller_id,
        )
        if row is None:
            raise NotFoundError("Product not found in this seller's shop.")
        return product_from_row(row)
