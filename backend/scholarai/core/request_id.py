from __future__ import annotations

import uuid
from contextvars import ContextVar, Token

"""
Core Request ID.

Rôle (fonctionnel) :
- Gère un identifiant de corrélation (request_id) stocké dans un ContextVar.
- Permet de corréler logs, erreurs et événements pour une même requête… ou un même job.
- Le request_id peut être :
  - fourni par un header entrant (X-Request-Id),
  - généré automatiquement si absent,
  - posé par l’auto-training pour tracer un ré-entraînement en arrière-plan
    (préfixe "auto-train-").

Notes :
- ContextVar est adapté aux contextes async : chaque requête / tâche asyncio garde sa valeur.
- asyncio.create_task copie le contexte courant : une tâche lancée depuis une requête
  hérite de son request_id tant qu’elle ne le remplace pas.
"""

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(rid: str | None) -> Token:
    """Force la valeur du request_id pour le contexte courant (retourne le token de reset)."""
    return _request_id.set(rid)


def reset_request_id(token: Token) -> None:
    """Restaure la valeur précédente (fin d’un job en arrière-plan)."""
    _request_id.reset(token)


def get_request_id() -> str | None:
    """Retourne le request_id du contexte courant (ou None)."""
    return _request_id.get()


def ensure_request_id(incoming: str | None = None) -> str:
    """
    Garantit un request_id pour le contexte courant.

    - Si un request_id entrant est fourni, il est nettoyé et réutilisé.
    - Sinon, on génère un UUID.
    """
    rid = (incoming or "").strip() or str(uuid.uuid4())
    set_request_id(rid)
    return rid


def job_request_id(prefix: str) -> str:
    """Identifiant court pour un job hors requête (ex : auto-train-3f2a9c1e)."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"
