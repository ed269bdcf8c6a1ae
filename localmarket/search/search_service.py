"""Module contenant le service de recherche de proximité."""
# localmarket/search/search_service.py
import asyncio
import math
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

import psutil
from pydantic import ValidationError

from localmarket.config import settings
from localmarket.errors import SearchTimeoutError, SearchValidationError
from localmarket.logger import logger
from localmarket.models import (
    CandidateSnapshot,
    Coordinate,
    GeoCandidate,
    SearchQuery,
    SearchResponse,
    SearchResult,
    SearchTarget,
    ShopSummary,
)
from localmarket.scoring.availability import AvailabilityResolver
from localmarket.scoring.distance import is_valid_coordinate
from localmarket.scoring.ranking import Ranker
from localmarket.scoring.trigram import TextMatcher
from localmarket.search.filters import Evaluation, build_predicates, matches_all
from localmarket.search.geo_index import GeoIndex, clamp_radius


@dataclass
class SearchContext:
    """Requête validée, partagée par les étapes de la recherche."""
    text: str
    origin: Coordinate
    radius_m: float
    open_only: bool
    target: SearchTarget
    now: datetime
    start_time: float


class SearchService:
    """Orchestration GeoIndex + TextMatcher + AvailabilityResolver + Ranker."""

    def __init__(
        self,
        geo_index: GeoIndex,
        cache=None,
        matcher: Optional[TextMatcher] = None,
        resolver: Optional[AvailabilityResolver] = None,
        ranker: Optional[Ranker] = None,
        clock: Callable[[], datetime] = datetime.now,
        timeout_seconds: Optional[float] = None,
    ):
        self.geo_index = geo_index
        self.cache = cache
        self.matcher = matcher or TextMatcher()
        self.resolver = resolver or AvailabilityResolver()
        self.ranker = ranker or Ranker()
        # Heure murale locale, sans conversion de fuseau
        self.clock = clock
        self.timeout_seconds = (
            settings.SEARCH_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )

    def validate(self, query: SearchQuery) -> SearchContext:
        """
        Valide la requête et calcule le rayon effectif.

        Raises:
            SearchValidationError: texte vide, position ou rayon invalide
        """
        if query.text is None or not query.text.strip():
            raise SearchValidationError(
                "A search term is required.", SearchValidationError.MISSING_QUERY
            )

        if not is_valid_coordinate(query.latitude, query.longitude):
            raise SearchValidationError(
                "A valid origin latitude/longitude is required.",
                SearchValidationError.INVALID_LOCATION,
            )

        radius = settings.DEFAULT_RADIUS_M if query.radius_m is None else query.radius_m
        if not math.isfinite(radius) or radius <= 0:
            raise SearchValidationError(
                "Search radius must be a positive number of meters.",
                SearchValidationError.INVALID_RADIUS,
            )

        return SearchContext(
            text=query.text.strip(),
            origin=Coordinate(latitude=query.latitude, longitude=query.longitude),
            radius_m=clamp_radius(radius),
            open_only=query.open_only,
            target=query.target,
            now=self.clock(),
            start_time=time.time(),
        )

    async def search(self, query: SearchQuery) -> SearchResponse:
        """Effectue une recherche bornée dans le temps.

        Args:
            query: Texte, origine, rayon, filtre "ouvert" et cible.

        Returns:
            Un objet SearchResponse avec les résultats classés.

        Raises:
            SearchValidationError: requête invalide
            DependencyError: index géographique indisponible
            SearchTimeoutError: délai global dépassé
        """
        ctx = self.validate(query)
        try:
            # wait_for annule la tâche interne, donc l'appel à l'index
            return await asyncio.wait_for(self._execute_search(ctx), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.warning(
                "Search timed out after {timeout}s (target: {target}, query: '{text}')",
                timeout=self.timeout_seconds, target=ctx.target.value, text=ctx.text,
            )
            raise SearchTimeoutError(
                f"Search did not complete within {self.timeout_seconds} seconds."
            ) from e

    def _cache_key(self, ctx: SearchContext) -> str:
        return (
            f"geo:{ctx.target.value}:{ctx.origin.latitude!r}:"
            f"{ctx.origin.longitude!r}:{ctx.radius_m!r}"
        )

    async def _fetch_candidates(self, ctx: SearchContext) -> List[GeoCandidate]:
        """Candidats de l'index, via un instantané Redis de courte durée."""
        use_cache = self.cache is not None and settings.ENABLE_CANDIDATE_CACHE
        if not use_cache:
            return await self.geo_index.within_radius(ctx.origin, ctx.radius_m, ctx.target)

        cache_key = self._cache_key(ctx)
        cached = await self.cache.get(cache_key)
        if cached:
            try:
                snapshot = CandidateSnapshot.model_validate_json(cached)
            except ValidationError:
                logger.warning("Discarding unreadable cache entry {key}", key=cache_key)
            else:
                logger.debug("Cache HIT for key: {key}", key=cache_key)
                return snapshot.candidates

        logger.debug("Cache MISS for key: {key}", key=cache_key)
        candidates = await self.geo_index.within_radius(ctx.origin, ctx.radius_m, ctx.target)
        await self.cache.set(
            cache_key,
            CandidateSnapshot(candidates=candidates).model_dump_json(),
            expire=settings.CANDIDATE_CACHE_TTL,
        )
        return candidates

    def _evaluate(self, candidate: GeoCandidate, ctx: SearchContext) -> Evaluation:
        shop = candidate.shop
        if candidate.product is not None:
            score = self.matcher.score(ctx.text, candidate.product.name)
            substring = self.matcher.contains(ctx.text, candidate.product.name)
        else:
            # Boutique : meilleur score entre nom et catégorie
            score = max(
                self.matcher.score(ctx.text, shop.name),
                self.matcher.score(ctx.text, shop.category),
            )
            substring = (
                self.matcher.contains(ctx.text, shop.name)
                or self.matcher.contains(ctx.text, shop.category)
            )

        status = self.resolver.resolve(
            shop.opening_time, shop.closing_time, shop.is_open_override, ctx.now
        )
        return Evaluation(candidate=candidate, score=score, substring=substring, status=status)

    def _to_result(self, evaluation: Evaluation) -> SearchResult:
        candidate = evaluation.candidate
        shop = candidate.shop
        product = candidate.product

        if product is not None:
            return SearchResult(
                id=product.id,
                target=SearchTarget.PRODUCTS,
                name=product.name,
                category=product.category,
                distance_m=candidate.distance_m,
                score=evaluation.score,
                status=evaluation.status,
                latitude=shop.latitude,
                longitude=shop.longitude,
                image_url=product.image_url or shop.image_url,
                price=product.price,
                shop=ShopSummary(
                    id=shop.id,
                    name=shop.name,
                    latitude=shop.latitude,
                    longitude=shop.longitude,
                    is_open=shop.is_open,
                    image_url=shop.image_url,
                ),
            )

        return SearchResult(
            id=shop.id,
            target=SearchTarget.SHOPS,
            name=shop.name,
            category=shop.category,
            distance_m=candidate.distance_m,
            score=evaluation.score,
            status=evaluation.status,
            latitude=shop.latitude,
            longitude=shop.longitude,
            image_url=shop.image_url,
            opening_time=shop.opening_time,
            closing_time=shop.closing_time,
            town_village=shop.town_village,
            district=shop.district,
        )

    async def _execute_search(self, ctx: SearchContext) -> SearchResponse:
        """Exécute la recherche : index, scoring, filtres, classement."""
        candidates = await self._fetch_candidates(ctx)

        predicates = build_predicates(
            radius_m=ctx.radius_m,
            matcher=self.matcher,
            target=ctx.target,
            only_open=ctx.open_only,
        )

        results = []
        for candidate in candidates:
            evaluation = self._evaluate(candidate, ctx)
            if matches_all(evaluation, predicates):
                results.append(self._to_result(evaluation))

        ranked = self.ranker.rank(results)

        duration = time.time() - ctx.start_time
        memory_mb = psutil.Process().memory_info().rss / 1024 / 1024

        logger.info(
            "Recherche {target} (query: '{text}', rayon: {radius}m, open_only: {open_only}) : "
            "{kept}/{total} résultats | Durée = {duration:.4f}s | RAM = {memory:.2f} Mo",
            target=ctx.target.value, text=ctx.text, radius=ctx.radius_m,
            open_only=ctx.open_only, kept=len(ranked), total=len(candidates),
            duration=duration, memory=memory_mb,
        )

        return SearchResponse(
            hits=ranked,
            total=len(ranked),
            radius_m=ctx.radius_m,
            query_time_ms=duration * 1000,
            memory_used_mb=memory_mb,
        )
