"""Erreurs métier du service, traduites en réponses HTTP dans main.py."""
from typing import Optional


class LocalMarketError(Exception):
    """Erreur de base du service."""

    kind = "INTERNAL_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.kind

    def to_dict(self) -> dict:
        """Représentation JSON renvoyée au client."""
        return {
            "error": self.kind,
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class SearchValidationError(LocalMarketError):
    """Requête invalide (texte manquant, coordonnées ou rayon incorrects)."""

    kind = "VALIDATION_ERROR"
    status_code = 400

    MISSING_QUERY = "MISSING_QUERY"
    INVALID_LOCATION = "INVALID_LOCATION"
    INVALID_RADIUS = "INVALID_RADIUS"
    EMPTY_UPDATE = "EMPTY_UPDATE"


class NotFoundError(LocalMarketError):
    kind = "NOT_FOUND"
    status_code = 404


class DependencyError(LocalMarketError):
    """Base de données ou index géographique indisponible.

    Le moteur ne réessaie pas : la politique de retry appartient à l'appelant.
    """

    kind = "DEPENDENCY_ERROR"
    status_code = 503
    retryable = True


class SearchTimeoutError(LocalMarketError):
    kind = "TIMEOUT"
    status_code = 504
    retryable = True


class AuthenticationError(LocalMarketError):
    kind = "UNAUTHORIZED"
    status_code = 401
