from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException

"""
Core Errors.

Rôle (fonctionnel) :
- Standardise le format des erreurs renvoyées par l’API (payload homogène).
- Fournit une exception HTTP applicative (AppHTTPException) pour les erreurs “transport”.
- Définit la taxonomie des erreurs métier du moteur de scoring (ScoringError et dérivées).

Convention de réponse (exemple) :
{
  "error": {
    "code": "NO_TRAINED_MODEL",
    "message": "No trained model available. Train a global model first.",
    "status": 409,
    "request_id": "...",
    "timestamp": "...",
    "details": {...}
  }
}

Taxonomie :
- InsufficientDataError : pas assez d’échantillons labellisés (skip côté auto-training).
- ConcurrencyLockError : un entraînement est déjà en cours pour ce scope.
- NoTrainedModelError : aucun modèle résolvable -> on refuse de deviner.
- *NotFoundError : entité absente (bourse, candidature, modèle).
"""


def now_iso() -> str:
    """Timestamp ISO-8601 en UTC (utilisé dans toutes les erreurs)."""
    return datetime.now(timezone.utc).isoformat()


def error_payload(
    *,
    code: str,
    message: str,
    status: int,
    request_id: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    """Construit un payload d’erreur homogène pour l’API."""
    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "status": status,
            "request_id": request_id,
            "timestamp": now_iso(),
        }
    }
    if details is not None:
        payload["error"]["details"] = details
    return payload


class AppHTTPException(HTTPException):
    """
    Exception applicative standardisée (couche HTTP).

    Exemple :
        raise AppHTTPException(400, "INVALID_STATUS", "Statut de décision invalide")
    """

    def __init__(self, status_code: int, code: str, message: str, details: Any = None):
        super().__init__(status_code=status_code, detail={"code": code, "message": message, "details": details})


class ScoringError(Exception):
    """
    Erreur métier du moteur de scoring.

    - `code` : identifiant stable (repris tel quel dans le payload API)
    - `status_code` : statut HTTP utilisé par le handler FastAPI
    - `details` : contexte optionnel (compteurs, ids…)
    """

    code = "SCORING_ERROR"
    status_code = 500

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InsufficientDataError(ScoringError):
    """Pas assez d’échantillons labellisés pour entraîner un modèle."""

    code = "INSUFFICIENT_DATA"
    status_code = 422

    def __init__(self, found: int, required: int, *, scope: str = "global") -> None:
        super().__init__(
            f"Insufficient training data ({scope}). Need at least {required} samples, found {found}",
            details={"found": found, "required": required, "scope": scope},
        )
        self.found = found
        self.required = required
        self.scope = scope


class ConcurrencyLockError(ScoringError):
    """Un entraînement est déjà en vol pour ce scope."""

    code = "TRAINING_IN_PROGRESS"
    status_code = 409

    def __init__(self, lock_key: str) -> None:
        super().__init__(f"Training already in progress for scope {lock_key}", details={"scope": lock_key})
        self.lock_key = lock_key


class NoTrainedModelError(ScoringError):
    """Aucun modèle actif (ni spécifique, ni global) : la prédiction est refusée."""

    code = "NO_TRAINED_MODEL"
    status_code = 409

    def __init__(self, message: str = "No trained model available. Train a global model first.") -> None:
        super().__init__(message)


class ScholarshipNotFoundError(ScoringError):
    code = "SCHOLARSHIP_NOT_FOUND"
    status_code = 404

    def __init__(self, scholarship_id: Any) -> None:
        super().__init__("Scholarship not found", details={"scholarship_id": str(scholarship_id)})


class ApplicationNotFoundError(ScoringError):
    code = "APPLICATION_NOT_FOUND"
    status_code = 404

    def __init__(self, application_id: Any) -> None:
        super().__init__("Application not found", details={"application_id": str(application_id)})


class ModelNotFoundError(ScoringError):
    code = "MODEL_NOT_FOUND"
    status_code = 404

    def __init__(self, model_id: Any) -> None:
        super().__init__("Trained model not found", details={"model_id": str(model_id)})
