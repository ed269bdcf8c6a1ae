"""Résolution de l'état ouvert/fermé d'une boutique."""
from datetime import datetime, time
from typing import Optional, Union

from localmarket.config import settings
from localmarket.logger import logger
from localmarket.models import OpenLabel, ShopStatus, TimeValue

MINUTES_PER_DAY = 24 * 60

REASON_PAUSED = "manually paused"
REASON_NO_HOURS = "hours not set"


def to_minutes(value: Union[TimeValue, datetime, None]) -> Optional[int]:
    """
    Convertit une heure murale en minutes depuis minuit (secondes ignorées).

    Accepte "HH:MM", "HH:MM:SS", datetime.time ou datetime.
    Retourne None si la valeur est absente ou illisible.
    """
    if value is None:
        return None
    if isinstance(value, (time, datetime)):
        return value.hour * 60 + value.minute
    try:
        parts = str(value).strip().split(":")
        if len(parts) not in (2, 3):
            return None
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        return None
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


class AvailabilityResolver:
    """
    Détermine si une boutique est ouverte à un instant donné.

    Ordre de décision (court-circuit) :
      1. override explicitement False -> CLOSED "manually paused"
      2. horaires absents -> CLOSED "hours not set"
      3. comparaison de l'heure murale avec [ouverture, fermeture)

    Quand la fermeture précède l'ouverture (ex. 22:00-06:00) et que
    `overnight` est actif, la plage passe minuit.
    """

    def __init__(
        self,
        soon_window_minutes: Optional[int] = None,
        overnight: Optional[bool] = None,
    ):
        self.soon_window = (
            settings.SOON_WINDOW_MINUTES if soon_window_minutes is None else soon_window_minutes
        )
        self.overnight = settings.OVERNIGHT_HOURS if overnight is None else overnight

    def resolve(
        self,
        opening_time: Optional[TimeValue],
        closing_time: Optional[TimeValue],
        manual_override: Optional[bool],
        now: Union[datetime, time, int],
    ) -> ShopStatus:
        """
        Args:
            opening_time: Heure d'ouverture murale
            closing_time: Heure de fermeture murale
            manual_override: False = pause du vendeur ; None et True sont équivalents
            now: Heure murale courante (datetime, time, ou minutes depuis minuit)

        Returns:
            ShopStatus avec label, raison et drapeaux "bientôt"
        """
        if manual_override is False:
            return ShopStatus(label=OpenLabel.CLOSED, reason=REASON_PAUSED)

        opening = to_minutes(opening_time)
        closing = to_minutes(closing_time)
        if opening is None or closing is None:
            if opening_time is not None and closing_time is not None:
                logger.warning(
                    "Unparseable shop hours {opening!r}-{closing!r}, treating as closed",
                    opening=opening_time, closing=closing_time,
                )
            return ShopStatus(label=OpenLabel.CLOSED, reason=REASON_NO_HOURS)

        current = now if isinstance(now, int) else to_minutes(now)

        if self.overnight and closing < opening:
            return self._resolve_overnight(opening, closing, current)
        return self._resolve_same_day(opening, closing, current)

    def _resolve_same_day(self, opening: int, closing: int, current: int) -> ShopStatus:
        if current < opening:
            return self._closed_until(opening, opening - current)
        if current < closing:
            return self._open_until(closing, closing - current)
        return ShopStatus(
            label=OpenLabel.CLOSED, reason=f"closed at {format_minutes(closing)}"
        )

    def _resolve_overnight(self, opening: int, closing: int, current: int) -> ShopStatus:
        if current >= opening or current < closing:
            return self._open_until(closing, (closing - current) % MINUTES_PER_DAY)
        return self._closed_until(opening, opening - current)

    def _open_until(self, closing: int, remaining: int) -> ShopStatus:
        return ShopStatus(
            label=OpenLabel.OPEN,
            reason=f"closes at {format_minutes(closing)}",
            closing_soon=remaining <= self.soon_window,
        )

    def _closed_until(self, opening: int, remaining: int) -> ShopStatus:
        return ShopStatus(
            label=OpenLabel.CLOSED,
            reason=f"opens at {format_minutes(opening)}",
            opening_soon=remaining <= self.soon_window,
        )
