"""Distance orthodromique (haversine) entre deux points WGS84."""
import math

# Rayon moyen de la Terre (IUGG), en mètres
EARTH_RADIUS_M = 6_371_008.8


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calcule la distance du grand cercle entre deux points.

    Args:
        lat1, lon1: Premier point en degrés décimaux
        lat2, lon2: Second point en degrés décimaux

    Returns:
        Distance en mètres
    """
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # min() protège asin des erreurs d'arrondi au-delà de 1.0
    c = 2 * math.asin(min(1.0, math.sqrt(a)))

    return EARTH_RADIUS_M * c


def is_valid_coordinate(latitude, longitude) -> bool:
    """Vrai si les deux valeurs sont des nombres finis dans les bornes WGS84."""
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0
