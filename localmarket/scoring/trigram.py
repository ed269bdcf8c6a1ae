"""Similarité par trigrammes (Jaccard), façon pg_trgm."""
import re
from functools import lru_cache
from typing import FrozenSet, Optional

from localmarket.config import settings

_WORD_RE = re.compile(r"[^\W_]+")


def normalize(text: str) -> str:
    """Minuscules (casefold) et espaces normalisés."""
    return " ".join(text.split()).casefold()


@lru_cache(maxsize=8192)
def trigrams(text: str) -> FrozenSet[str]:
    """
    Décompose une chaîne en ensemble de trigrammes.

    Chaque mot alphanumérique est préfixé de deux espaces et suffixé d'un
    espace avant découpage, comme pg_trgm : "lait" donne
    {"  l", " la", "lai", "ait", "it "}.
    """
    grams = set()
    for word in _WORD_RE.findall(text.casefold()):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            grams.add(padded[i:i + 3])
    return frozenset(grams)


class TextMatcher:
    """Scoreur de similarité texte entre une requête et un candidat."""

    def __init__(self, threshold: Optional[float] = None):
        self.threshold = settings.MATCH_THRESHOLD if threshold is None else threshold

    def score(self, query: str, candidate: Optional[str]) -> float:
        """
        Jaccard des ensembles de trigrammes : |A ∩ B| / |A ∪ B|.

        Args:
            query: Texte recherché (non vide)
            candidate: Nom ou catégorie du candidat

        Returns:
            Score dans [0, 1], 1.0 pour une égalité exacte
        """
        if not query or not query.strip():
            raise ValueError("query must not be empty")
        if not candidate:
            return 0.0

        q_grams = trigrams(query)
        c_grams = trigrams(candidate)
        union = q_grams | c_grams
        if not union:
            return 0.0
        return len(q_grams & c_grams) / len(union)

    def contains(self, query: str, candidate: Optional[str]) -> bool:
        """Sous-chaîne insensible à la casse, espaces normalisés."""
        if not candidate:
            return False
        needle = normalize(query)
        return bool(needle) and needle in normalize(candidate)

    def is_match(self, score: float, substring: bool) -> bool:
        # La sous-chaîne l'emporte toujours sur le seuil flou
        return substring or score > self.threshold
