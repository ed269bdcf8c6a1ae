"""Main module for the FastAPI application."""
import math
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from .cache import cache_manager
from .config import settings
from .db.postgres_connector import PostgresConnector
from .db.shop_repository import ShopRepository
from .errors import DependencyError, LocalMarketError, NotFoundError, SearchValidationError
from .logger import logger
from .models import (
    Product,
    ProductAvailabilityUpdate,
    SearchQuery,
    SearchResponse,
    SearchTarget,
    Shop,
    ShopStatusUpdate,
    ShopView,
)
from .scoring.availability import AvailabilityResolver
from .search.geo_index import PostgresGeoIndex
from .search.search_service import SearchService
from .security import get_current_seller


# --- Initialisation des variables globales ---

db_connector: PostgresConnector = PostgresConnector(
    settings.DATABASE_URL, max_size=settings.DB_POOL_MAX_SIZE
)
shop_repository: ShopRepository = ShopRepository(db_connector)
availability_resolver: AvailabilityResolver = AvailabilityResolver()

search_service: SearchService = SearchService(
    geo_index=PostgresGeoIndex(db_connector),
    cache=cache_manager,
    resolver=availability_resolver,
)
# Alias `service` / `repository` pour les tests qui patchent `main.service`
service = search_service
repository = shop_repository


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Handle FastAPI startup and shutdown events."""
    logger.info("Starting up LocalMarket search API...")

    try:
        await db_connector.connect()
        logger.info("PostgreSQL connection pool established successfully.")
    except DependencyError as e:
        logger.error("Failed to connect to PostgreSQL: {error}", error=e)

    try:
        await cache_manager.ping()
        logger.info("Redis cache connected successfully.")
    except RedisError as e:
        logger.error("Failed to connect to Redis: {error}", error=e)

    yield

    logger.info("Shutting down LocalMarket search API...")
    await db_connector.close()
    logger.info("PostgreSQL connection pool closed.")
    await cache_manager.close()
    logger.info("Redis connection closed.")


app = FastAPI(
    title="LocalMarket - Nearby Search Service",
    lifespan=lifespan
)


@app.exception_handler(LocalMarketError)
async def local_market_error_handler(_request: Request, exc: LocalMarketError):
    """Traduit les erreurs métier en réponses JSON typées."""
    if exc.status_code >= 500:
        logger.error("{kind}: {message}", kind=exc.kind, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unexpected_error_handler(_request: Request, exc: Exception):
    """Toute autre exception : 500 au même format que les erreurs métier."""
    logger.opt(exception=exc).error("Unhandled error: {error}", error=exc)
    return JSONResponse(status_code=500, content=LocalMarketError("Internal server error").to_dict())


def get_service() -> SearchService:
    """Dépendance FastAPI pour obtenir l'instance du service de recherche."""
    return service


def get_repository() -> ShopRepository:
    return repository


def _to_float(value: Optional[str]) -> Optional[float]:
    """Paramètre de requête -> float ; NaN si illisible (rejeté par la validation)."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        return math.nan


async def _run_search(
    svc: SearchService,
    target: SearchTarget,
    q: Optional[str],
    lat: Optional[str],
    lon: Optional[str],
    radius: Optional[str],
    open_only: bool,
) -> SearchResponse:
    query = SearchQuery(
        text=q,
        latitude=_to_float(lat),
        longitude=_to_float(lon),
        radius_m=_to_float(radius),
        open_only=open_only,
        target=target,
    )
    try:
        return await svc.search(query)
    except LocalMarketError:
        raise
    except Exception as e:
        logger.exception("Error processing search request")
        raise LocalMarketError("Internal server error") from e


@app.get("/api/search", response_model=SearchResponse)
async def search_products(
    q: Optional[str] = None,
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    radius: Optional[str] = None,
    open_only: bool = False,
    svc: SearchService = Depends(get_service),
):
    """GET /api/search : produits disponibles proches correspondant à `q`."""
    return await _run_search(svc, SearchTarget.PRODUCTS, q, lat, lon, radius, open_only)


@app.get("/api/search/shops", response_model=SearchResponse)
async def search_shops(
    q: Optional[str] = None,
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    radius: Optional[str] = None,
    open_only: bool = False,
    svc: SearchService = Depends(get_service),
):
    """GET /api/search/shops : boutiques proches par nom ou catégorie."""
    return await _run_search(svc, SearchTarget.SHOPS, q, lat, lon, radius, open_only)


def _shop_view(shop: Shop) -> ShopView:
    shop_status = availability_resolver.resolve(
        shop.opening_time, shop.closing_time, shop.is_open_override, datetime.now()
    )
    return ShopView(**shop.model_dump(), status=shop_status)


@app.get("/api/shops/my-shop", response_model=ShopView)
async def get_my_shop(
    seller_id: int = Depends(get_current_seller),
    repo: ShopRepository = Depends(get_repository),
):
    """Boutique du vendeur connecté, avec son état calculé."""
    shop = await repo.get_by_seller(seller_id)
    if shop is None:
        raise NotFoundError("Shop not found for this seller.")
    return _shop_view(shop)


@app.get("/api/shops/my-shop/products", response_model=List[Product])
async def list_my_products(
    seller_id: int = Depends(get_current_seller),
    repo: ShopRepository = Depends(get_repository),
):
    """Catalogue complet du vendeur, produits indisponibles compris."""
    return await repo.list_seller_products(seller_id)


@app.patch("/api/shops/status", response_model=ShopView)
async def update_shop_status(
    update: ShopStatusUpdate,
    seller_id: int = Depends(get_current_seller),
    repo: ShopRepository = Depends(get_repository),
):
    """Met à jour l'interrupteur is_open et/ou la pause manuelle."""
    if update.is_open is None and not update.sets_override:
        raise SearchValidationError(
            "Provide is_open or is_open_override.", code=SearchValidationError.EMPTY_UPDATE
        )
    shop = await repo.update_status(seller_id, update)
    return _shop_view(shop)


@app.get("/api/products/shop/{shop_id}", response_model=List[Product])
async def list_shop_products(shop_id: int, repo: ShopRepository = Depends(get_repository)):
    """Produits disponibles d'une boutique, triés par nom."""
    return await repo.list_available_products(shop_id)


@app.patch("/api/products/{product_id}", response_model=Product)
async def update_product_availability(
    product_id: int,
    update: ProductAvailabilityUpdate,
    seller_id: int = Depends(get_current_seller),
    repo: ShopRepository = Depends(get_repository),
):
    """Bascule Disponible / Indisponible pour un produit du vendeur."""
    return await repo.set_product_availability(seller_id, product_id, update.is_available)


@app.get("/")
def root():
    """Root endpoint to check API status."""
    return {"status": "ok", "message": "LocalMarket search API is running 🚀"}


@app.get("/health", status_code=status.HTTP_200_OK, tags=["Monitoring"])
async def health_check():
    """
    Health check endpoint.

    Checks connectivity to the database and Redis.
    Returns 200 OK if both are reachable, otherwise 503 Service Unavailable.
    """
    services_status = {"database": "ok", "redis": "ok"}
    try:
        await cache_manager.ping()
    except RedisError:
        services_status["redis"] = "error"
        logger.error("Health check failed: Redis connection error.")

    try:
        await db_connector.execute_query("SELECT 1")
    except DependencyError:
        services_status["database"] = "error"
        logger.error("Health check failed: Database connection error.")

    if "error" in services_status.values():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=services_status)

    return services_status
