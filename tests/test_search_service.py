# tests/test_search_service.py
import asyncio
import math
from unittest.mock import AsyncMock, patch

import pytest

from localmarket.errors import DependencyError, SearchTimeoutError, SearchValidationError
from localmarket.models import CandidateSnapshot, OpenLabel, SearchQuery, SearchTarget
from localmarket.scoring.trigram import TextMatcher
from localmarket.search.geo_index import InMemoryGeoIndex
from localmarket.search.search_service import SearchService


def _query(origin, text="milk", target=SearchTarget.PRODUCTS, **kwargs):
    return SearchQuery(
        text=text, latitude=origin[0], longitude=origin[1], target=target, **kwargs
    )


class TestValidation:

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_missing_query(self, search_service, origin, text):
        with pytest.raises(SearchValidationError) as exc:
            search_service.validate(_query(origin, text=text))
        assert exc.value.code == SearchValidationError.MISSING_QUERY

    @pytest.mark.parametrize("lat, lon", [
        (None, 78.4), (17.3, None), (math.nan, 78.4), (17.3, math.inf), (95.0, 78.4),
    ])
    def test_invalid_location(self, search_service, lat, lon):
        with pytest.raises(SearchValidationError) as exc:
            search_service.validate(SearchQuery(text="milk", latitude=lat, longitude=lon))
        assert exc.value.code == SearchValidationError.INVALID_LOCATION

    @pytest.mark.parametrize("radius", [0, -100, math.nan, math.inf])
    def test_invalid_radius(self, search_service, origin, radius):
        with pytest.raises(SearchValidationError) as exc:
            search_service.validate(_query(origin, radius_m=radius))
        assert exc.value.code == SearchValidationError.INVALID_RADIUS

    @pytest.mark.parametrize("radius, effective", [
        (None, 10_000), (200, 500), (500_000, 100_000), (2_500, 2_500),
    ])
    def test_radius_default_and_clamp(self, search_service, origin, radius, effective):
        assert search_service.validate(_query(origin, radius_m=radius)).radius_m == effective

    def test_query_text_is_trimmed(self, search_service, origin):
        assert search_service.validate(_query(origin, text="  milk ")).text == "milk"


@pytest.mark.asyncio
class TestProductSearch:

    async def test_ranked_by_score_then_distance(self, search_service, origin):
        response = await search_service.search(_query(origin))
        # Milk Shake (0.45), les deux Milk Packet 1L à égalité départagés
        # par la distance, puis Toned Milk 500ml (0.29)
        assert [hit.id for hit in response.hits] == [108, 102, 101, 103]
        assert response.total == 4
        assert response.radius_m == 10_000

    async def test_every_hit_is_within_radius_and_matches(self, search_service, origin):
        matcher = TextMatcher()
        response = await search_service.search(_query(origin, radius_m=600))
        assert response.hits
        for hit in response.hits:
            assert hit.distance_m <= 600
            assert hit.score > 0.1 or matcher.contains("milk", hit.name)

    async def test_substring_match_is_included(self, search_service, origin):
        response = await search_service.search(_query(origin))
        names = {hit.name for hit in response.hits}
        assert "Milk Packet 1L" in names

    async def test_unavailable_and_distant_products_excluded(self, search_service, origin):
        response = await search_service.search(_query(origin))
        ids = {hit.id for hit in response.hits}
        assert 104 not in ids  # indisponible
        assert 107 not in ids  # ~55 km

    async def test_product_result_carries_owning_shop(self, search_service, origin):
        response = await search_service.search(_query(origin))
        hit = next(h for h in response.hits if h.id == 102)
        assert hit.price == 30
        assert hit.shop.id == 2
        assert hit.shop.name == "Nikhils Store"
        assert hit.latitude == hit.shop.latitude
        assert hit.status.label is OpenLabel.OPEN

    async def test_open_only_uses_schedule_and_seller_switch(self, search_service, origin):
        response = await search_service.search(_query(origin, open_only=True))
        # 101 : horaires absents ; 108 : ouvert selon horaires mais is_open = False
        assert [hit.id for hit in response.hits] == [102, 103]
        assert all(hit.status.label is OpenLabel.OPEN for hit in response.hits)

    async def test_overnight_shop_closed_in_afternoon(self, search_service, origin):
        response = await search_service.search(_query(origin, text="bread"))
        bakery_bread = next(h for h in response.hits if h.id == 106)
        assert bakery_bread.status.label is OpenLabel.CLOSED
        assert bakery_bread.status.reason == "opens at 22:00"

        open_only = await search_service.search(_query(origin, text="bread", open_only=True))
        assert open_only.hits == []

    async def test_no_match_is_an_empty_result(self, search_service, origin):
        response = await search_service.search(_query(origin, text="zzzz"))
        assert response.hits == []
        assert response.total == 0


@pytest.mark.asyncio
class TestShopSearch:

    async def test_higher_similarity_wins_over_distance(self, search_service, origin):
        response = await search_service.search(
            _query(origin, text="nikhil store", target=SearchTarget.SHOPS)
        )
        top = response.hits[:2]
        assert [hit.name for hit in top] == ["Nikhil Store", "Nikhils Store"]
        # La plus proche est classée seconde
        assert top[0].distance_m > top[1].distance_m
        assert top[0].score == 1.0
        assert top[1].score == pytest.approx(0.8)

    async def test_category_match_uses_best_field(self, search_service, origin):
        response = await search_service.search(
            _query(origin, text="pharmacy", target=SearchTarget.SHOPS)
        )
        assert [hit.name for hit in response.hits] == ["Sri Balaji Medicals"]
        hit = response.hits[0]
        assert hit.score == 1.0
        assert hit.status.label is OpenLabel.CLOSED
        assert hit.status.reason == "manually paused"

    async def test_missing_hours_reported_closed(self, search_service, origin):
        response = await search_service.search(
            _query(origin, text="dairy", target=SearchTarget.SHOPS)
        )
        hit = response.hits[0]
        assert hit.name == "Ravi Dairy"
        assert hit.status.reason == "hours not set"

    async def test_open_only_grocery(self, search_service, origin):
        response = await search_service.search(
            _query(origin, text="grocery", target=SearchTarget.SHOPS, open_only=True)
        )
        # Closed Switch Kirana : horaires ouverts mais interrupteur coupé
        assert [hit.id for hit in response.hits] == [2, 1]


@pytest.mark.asyncio
class TestCandidateCache:

    async def test_cache_miss_queries_index_and_stores_snapshot(self, search_service, origin):
        with patch.object(
            search_service.geo_index, "within_radius",
            new=AsyncMock(wraps=search_service.geo_index.within_radius),
        ) as spy:
            await search_service.search(_query(origin))

        search_service.cache.get.assert_called_once()
        spy.assert_called_once()
        search_service.cache.set.assert_called_once()
        key, value = search_service.cache.set.call_args.args
        assert key.startswith("geo:products:")
        assert len(CandidateSnapshot.model_validate_json(value).candidates) == 7

    async def test_cache_hit_skips_index(self, search_service, geo_index, origin):
        ctx = search_service.validate(_query(origin))
        candidates = await geo_index.within_radius(ctx.origin, ctx.radius_m, ctx.target)
        search_service.cache.get.return_value = CandidateSnapshot(
            candidates=candidates
        ).model_dump_json()

        with patch.object(geo_index, "within_radius", new=AsyncMock()) as spy:
            response = await search_service.search(_query(origin))

        spy.assert_not_called()
        search_service.cache.set.assert_not_called()
        assert [hit.id for hit in response.hits] == [108, 102, 101, 103]

    async def test_unreadable_cache_entry_falls_back_to_index(self, search_service, origin):
        search_service.cache.get.return_value = "not json"
        response = await search_service.search(_query(origin))
        assert response.total == 4
        search_service.cache.set.assert_called_once()

    async def test_without_cache(self, geo_index, origin):
        service = SearchService(geo_index=geo_index, cache=None)
        response = await service.search(_query(origin))
        assert response.total == 4


class SlowGeoIndex(InMemoryGeoIndex):

    def __init__(self):
        super().__init__()
        self.cancelled = False

    async def _query(self, origin, radius_m, target):
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return []


class FailingGeoIndex(InMemoryGeoIndex):

    async def _query(self, origin, radius_m, target):
        raise DependencyError("Database unavailable")


@pytest.mark.asyncio
class TestFailures:

    async def test_timeout_cancels_index_call(self, origin):
        index = SlowGeoIndex()
        service = SearchService(geo_index=index, timeout_seconds=0.05)

        with pytest.raises(SearchTimeoutError) as exc:
            await service.search(_query(origin))

        assert exc.value.kind == "TIMEOUT"
        assert index.cancelled

    async def test_dependency_error_is_not_retried(self, origin):
        index = FailingGeoIndex()
        service = SearchService(geo_index=index)
        with patch.object(index, "_query", new=AsyncMock(wraps=index._query)) as spy:
            with pytest.raises(DependencyError) as exc:
                await service.search(_query(origin))
        assert exc.value.retryable
        spy.assert_called_once()
