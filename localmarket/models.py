"""Modèles Pydantic pour les entités, les requêtes et les réponses."""
from datetime import datetime, time
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

TimeValue = Union[str, time]


class SearchTarget(str, Enum):
    """Ensemble d'entités interrogé."""
    PRODUCTS = "products"
    SHOPS = "shops"


class OpenLabel(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class Coordinate(BaseModel): # pylint: disable=too-few-public-methods
    """Point WGS84 en degrés décimaux."""
    latitude: float
    longitude: float


class Shop(BaseModel): # pylint: disable=too-few-public-methods
    """Boutique d'un vendeur."""
    id: int
    seller_id: Optional[int] = None
    name: str
    category: Optional[str] = None
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    opening_time: Optional[TimeValue] = None
    closing_time: Optional[TimeValue] = None
    # False = pause manuelle ; None / True = les horaires décident
    is_open_override: Optional[bool] = None
    # Interrupteur général du vendeur, indépendant des horaires
    is_open: bool = True
    description: Optional[str] = None
    image_url: Optional[str] = None
    town_village: Optional[str] = None
    mandal: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None


class Product(BaseModel): # pylint: disable=too-few-public-methods
    """Produit appartenant à une seule boutique."""
    id: int
    shop_id: int
    name: str
    category: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    is_available: bool = True
    description: Optional[str] = None
    image_url: Optional[str] = None
    last_updated: Optional[datetime] = None


class GeoCandidate(BaseModel): # pylint: disable=too-few-public-methods
    """Entité retournée par l'index géographique, avec sa distance à l'origine."""
    shop: Shop
    product: Optional[Product] = None
    distance_m: float


class CandidateSnapshot(BaseModel): # pylint: disable=too-few-public-methods
    """Instantané des candidats mis en cache."""
    candidates: List[GeoCandidate] = Field(default_factory=list)


class ShopStatus(BaseModel): # pylint: disable=too-few-public-methods
    """État ouvert/fermé calculé à l'instant de la requête."""
    label: OpenLabel
    reason: str
    opening_soon: bool = False
    closing_soon: bool = False

    @property
    def is_open(self) -> bool:
        return self.label is OpenLabel.OPEN


class SearchQuery(BaseModel): # pylint: disable=too-few-public-methods
    """Requête de recherche (non persistée).

    Les champs restent optionnels : la validation métier est faite par
    SearchService afin de renvoyer des codes d'erreur précis.
    """
    text: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_m: Optional[float] = None
    open_only: bool = False
    target: SearchTarget = SearchTarget.PRODUCTS


class ShopSummary(BaseModel): # pylint: disable=too-few-public-methods
    """Boutique propriétaire, jointe à un résultat produit."""
    id: int
    name: str
    latitude: float
    longitude: float
    is_open: bool
    image_url: Optional[str] = None


class SearchResult(BaseModel): # pylint: disable=too-few-public-methods
    """Résultat affichable sur la carte."""
    id: int
    target: SearchTarget
    name: str
    category: Optional[str] = None
    distance_m: float
    score: float
    status: ShopStatus
    latitude: float
    longitude: float
    image_url: Optional[str] = None
    # Produits uniquement
    price: Optional[float] = None
    shop: Optional[ShopSummary] = None
    # Boutiques uniquement
    opening_time: Optional[TimeValue] = None
    closing_time: Optional[TimeValue] = None
    town_village: Optional[str] = None
    district: Optional[str] = None


class SearchResponse(BaseModel): # pylint: disable=too-few-public-methods
    """Réponse de recherche."""
    hits: List[SearchResult]
    total: int
    radius_m: float
    query_time_ms: float
    memory_used_mb: Optional[float] = None

    model_config = ConfigDict(extra="allow")


class ShopStatusUpdate(BaseModel): # pylint: disable=too-few-public-methods
    """Corps de PATCH /api/shops/status.

    `is_open_override` peut être remis explicitement à null pour rendre la
    main aux horaires ; on distingue donc « absent » de « null ».
    """
    is_open: Optional[bool] = None
    is_open_override: Optional[bool] = None

    @property
    def sets_override(self) -> bool:
        return "is_open_override" in self.model_fields_set


class ProductAvailabilityUpdate(BaseModel): # pylint: disable=too-few-public-methods
    is_available: bool


class ShopView(Shop):
    """Boutique du vendeur avec son état calculé."""
    status: ShopStatus
