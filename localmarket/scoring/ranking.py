from typing import List

from localmarket.models import SearchResult


class Ranker:
    """Score décroissant, puis distance croissante.

    sorted() est stable : à (score, distance) égaux l'ordre d'entrée,
    celui de l'index géographique, est conservé.
    """

    def rank(self, results: List[SearchResult]) -> List[SearchResult]:
        return sorted(results, key=lambda r: (-r.score, r.distance_m))
