"""
Prédicats de filtrage nommés, combinés par un ET logique.

Chaque filtre de la recherche (rayon, texte, disponibilité, ouvert seulement)
est une fonction testable isolément ; `build_predicates` compose la liste
correspondant à une requête.
"""
from dataclasses import dataclass
from typing import Callable, List, NamedTuple

from localmarket.models import GeoCandidate, SearchTarget, ShopStatus
from localmarket.scoring.trigram import TextMatcher


@dataclass
class Evaluation:
    """Candidat géographique enrichi de son score et de son état."""
    candidate: GeoCandidate
    score: float
    substring: bool
    status: ShopStatus


class Predicate(NamedTuple):
    name: str
    test: Callable[[Evaluation], bool]


def within_radius(radius_m: float) -> Predicate:
    return Predicate("within_radius", lambda ev: ev.candidate.distance_m <= radius_m)


def text_match(matcher: TextMatcher) -> Predicate:
    return Predicate("text_match", lambda ev: matcher.is_match(ev.score, ev.substring))


def product_available() -> Predicate:
    return Predicate(
        "product_available",
        lambda ev: ev.candidate.product is None or ev.candidate.product.is_available,
    )


def open_only() -> Predicate:
    """Double contrôle : état calculé OPEN *et* interrupteur vendeur is_open."""
    return Predicate(
        "open_only",
        lambda ev: ev.status.is_open and ev.candidate.shop.is_open,
    )


def build_predicates(
    radius_m: float,
    matcher: TextMatcher,
    target: SearchTarget,
    only_open: bool,
) -> List[Predicate]:
    predicates = [within_radius(radius_m), text_match(matcher)]
    if target is SearchTarget.PRODUCTS:
        predicates.append(product_available())
    if only_open:
        predicates.append(open_only())
    return predicates


def matches_all(evaluation: Evaluation, predicates: List[Predicate]) -> bool:
    return all(predicate.test(evaluation) for predicate in predicates)
