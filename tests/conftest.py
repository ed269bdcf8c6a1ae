# tests/conftest.py
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from localmarket.models import Product, Shop
from localmarket.scoring.availability import AvailabilityResolver
from localmarket.search.geo_index import InMemoryGeoIndex
from localmarket.search.search_service import SearchService

# Origine des recherches : centre de Hyderabad. 0.001° de latitude ≈ 111 m.
ORIGIN_LAT = 17.3850
ORIGIN_LON = 78.4867

# Heure murale figée pour des états ouvert/fermé déterministes
FIXED_NOW = datetime(2026, 10, 19, 14, 0)


def _shop(shop_id, name, category, dlat, opening="09:00", closing="21:00", **extra):
    return Shop(
        id=shop_id,
        seller_id=shop_id * 10,
        name=name,
        category=category,
        latitude=ORIGIN_LAT + dlat,
        longitude=ORIGIN_LON,
        opening_time=opening,
        closing_time=closing,
        **extra,
    )


@pytest.fixture
def origin():
    return ORIGIN_LAT, ORIGIN_LON


@pytest.fixture
def shops():
    return [
        _shop(1, "Nikhil Store", "Grocery", 0.020),
        _shop(2, "Nikhils Store", "Grocery", 0.001),
        _shop(3, "Sri Balaji Medicals", "Pharmacy", 0.005,
              opening="08:00", closing="22:00", is_open_override=False),
        _shop(4, "Ravi Dairy", "Dairy", 0.003, opening=None, closing=None),
        _shop(5, "Far Away Mart", "Grocery", 0.500),
        _shop(6, "Night Owl Bakery", "Bakery", 0.004, opening="22:00", closing="06:00"),
        _shop(7, "Closed Switch Kirana", "Grocery", 0.006, is_open=False),
    ]


@pytest.fixture
def products():
    return [
        Product(id=101, shop_id=4, name="Milk Packet 1L", category="Dairy", price=28),
        Product(id=102, shop_id=2, name="Milk Packet 1L", category="Dairy", price=30),
        Product(id=103, shop_id=1, name="Toned Milk 500ml", category="Dairy", price=25),
        Product(id=104, shop_id=2, name="Milk Powder", category="Dairy", price=250,
                is_available=False),
        Product(id=105, shop_id=3, name="Paracetamol 500mg", category="Medicine", price=20),
        Product(id=106, shop_id=6, name="Bread", category="Bakery", price=40),
        Product(id=107, shop_id=5, name="Milk Bread", category="Bakery", price=45),
        Product(id=108, shop_id=7, name="Milk Shake", category="Drinks", price=60),
    ]


@pytest.fixture
def geo_index(shops, products):
    return InMemoryGeoIndex(shops=shops, products=products)


@pytest.fixture
def mock_cache_manager():
    """Fixture pour un mock du gestionnaire de cache Redis."""
    cache = MagicMock()
    cache.get = AsyncMock(return_value=None)  # Par défaut, le cache est vide (miss)
    cache.set = AsyncMock()
    return cache


@pytest.fixture
def mock_db_connector():
    """Fixture pour un mock du connecteur PostgreSQL."""
    db_conn = MagicMock()
    db_conn.execute_query = AsyncMock(return_value=[])
    db_conn.fetch_one = AsyncMock(return_value=None)
    return db_conn


@pytest.fixture
def search_service(geo_index, mock_cache_manager):
    """SearchService réel sur l'index en mémoire, horloge figée à 14:00."""
    return SearchService(
        geo_index=geo_index,
        cache=mock_cache_manager,
        resolver=AvailabilityResolver(soon_window_minutes=60, overnight=True),
        clock=lambda: FIXED_NOW,
        timeout_seconds=2.0,
    )
