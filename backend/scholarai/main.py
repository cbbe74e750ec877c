from __future__ import annotations

import time
import uuid
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from scholarai.api.router import api_router
from scholarai.core.settings import settings
from scholarai.core.logging import setup_logging
from scholarai.core.errors import error_payload, AppHTTPException, ScoringError
from scholarai.core.request_id import set_request_id, get_request_id, ensure_request_id
from scholarai.db.session import AsyncSessionLocal, create_schema
from scholarai.ml.inference import PredictionConfig
from scholarai.ml.model_cache import ModelWeightsCache
from scholarai.ml.model_registry import ModelRegistry
from scholarai.services.auto_training import AutoTrainer, AutoTrainingConfig
from scholarai.services.prediction_service import PredictionService
from scholarai.services.training_service import TrainingService

"""
Application FastAPI (entrypoint).

Rôle (fonctionnel) :
- Configure l’application (settings, CORS, middlewares, routers).
- Construit les services partagés et les pose sur app.state :
  - ModelWeightsCache + ModelRegistry (résolution du modèle actif),
  - TrainingService / PredictionService,
  - AutoTrainer (ré-entraînement en arrière-plan, verrous par scope).
- Lifespan : création du schéma (DB_AUTO_CREATE), capture de l’event loop pour
  l’auto-training, attente des entraînements en vol à l’arrêt.
- Centralise l’observabilité :
  - request_id propagé (X-Request-Id)
  - logs structurés JSON (timing, status, client_ip)
  - seuil de “slow request”
- Uniformise les erreurs côté client (format error_payload), y compris les erreurs
  métier du moteur (ScoringError -> code + statut HTTP).

Ce fichier ne contient pas de logique métier :
- La logique métier est dans scholarai.services / scholarai.ml
- Les routes sont dans scholarai.api
- Les composants transverses sont dans scholarai.core
"""


# --- Force UTF-8 in Content-Type for JSON responses ---
class UTF8JSONResponse(JSONResponse):
    """Réponse JSON avec charset UTF-8 explicite (cohérent sur tous les endpoints)."""
    media_type = "application/json; charset=utf-8"


# --- Logging (niveau depuis .env si dispo) ---
LOG_LEVEL = getattr(settings, "LOG_LEVEL", "INFO")
setup_logging(LOG_LEVEL)

# logger principal projet
log = logging.getLogger("scholarai")

# logger dédié observabilité HTTP (séparé du métier)
http_log = logging.getLogger("scholarai.http")

# seuil slow request (ms)
SLOW_MS = int(getattr(settings, "SLOW_REQUEST_MS", 800))


def _split_origins(value: str) -> list[str]:
    """Parse une liste d’origines CORS depuis une string 'a,b,c'."""
    if not value:
        return []
    return [o.strip() for o in value.split(",") if o.strip()]


def install_services(app: FastAPI, session_factory=AsyncSessionLocal) -> None:
    """Construit les singletons (cache, registry, services) et les pose sur app.state."""
    cache = ModelWeightsCache(ttl_seconds=settings.MODEL_CACHE_TTL_SECONDS)
    registry = ModelRegistry(cache)
    training_service = TrainingService.from_settings(registry, settings)

    app.state.registry = registry
    app.state.training_service = training_service
    app.state.prediction_service = PredictionService(registry, PredictionConfig.from_settings(settings))
    app.state.auto_trainer = AutoTrainer(
        training_service,
        session_factory,
        AutoTrainingConfig.from_settings(settings),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DB_AUTO_CREATE:
        await create_schema()
    app.state.auto_trainer.start()
    log.info("startup complete")
    try:
        yield
    finally:
        # Laisse finir les ré-entraînements en vol (pas de modèle à moitié activé)
        await app.state.auto_trainer.drain()


app = FastAPI(
    title=getattr(settings, "APP_NAME", "ScholarAI API"),
    debug=getattr(settings, "DEBUG", False),
    default_response_class=UTF8JSONResponse,
    lifespan=lifespan,
)

install_services(app)

# --- CORS ---
origins = _split_origins(getattr(settings, "CORS_ORIGINS", ""))

# Origines par défaut en dev (Vite + React legacy)
default_dev_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or default_dev_origins,
    allow_credentials=False,  # pas de cookies (API stateless)
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "X-Request-Id",
    ],
)

# --- Routers ---
app.include_router(api_router)


# --- Middleware observabilité : request_id + timing + logs structurés ---
@app.middleware("http")
async def request_observability(request: Request, call_next):
    # Prend le header s’il existe, sinon génère un UUID
    rid = ensure_request_id(request.headers.get("X-Request-Id"))
    request.state.request_id = rid

    start = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        duration_ms = int((time.perf_counter() - start) * 1000)

        # Toujours renvoyer le request id au client
        if response is not None:
            response.headers["X-Request-Id"] = rid

        # Slow request => WARNING, sinon INFO
        level = logging.WARNING if duration_ms >= SLOW_MS else logging.INFO
        http_log.log(
            level,
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": getattr(response, "status_code", None),
                "duration_ms": duration_ms,
                "client_ip": request.client.host if request.client else None,
            },
        )

        # Reset contextvar (propre en cas de réutilisation event loop / worker)
        set_request_id(None)


def _rid(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid.uuid4())


# --- Error handlers : format standard, pas de stacktrace côté client ---
@app.exception_handler(ScoringError)
async def scoring_error_handler(request: Request, exc: ScoringError):
    """Erreurs métier du moteur (pas de modèle, données insuffisantes, verrou…) -> payload standard."""
    if exc.status_code >= 500:
        log.exception("Scoring error: %s", exc.message)
    return UTF8JSONResponse(
        status_code=exc.status_code,
        content=error_payload(
            code=exc.code,
            message=exc.message,
            status=exc.status_code,
            request_id=_rid(request),
            details=exc.details,
        ),
    )


@app.exception_handler(AppHTTPException)
async def app_http_exception_handler(request: Request, exc: AppHTTPException):
    """Erreurs applicatives (AppHTTPException) -> payload standard."""
    detail = exc.detail if isinstance(exc.detail, dict) else {}

    code = str(detail.get("code", "HTTP_ERROR"))
    message = str(detail.get("message", "Erreur HTTP"))
    details = detail.get("details", None)

    return UTF8JSONResponse(
        status_code=exc.status_code,
        content=error_payload(code=code, message=message, status=exc.status_code, request_id=_rid(request), details=details),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Erreurs HTTP natives (404, 405, etc.) -> payload standard."""
    if isinstance(exc.detail, dict):
        code = str(exc.detail.get("code", "HTTP_ERROR"))
        message = str(exc.detail.get("message", "Erreur HTTP"))
        details = exc.detail.get("details", None)
    else:
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        message = str(exc.detail)
        details = None

    return UTF8JSONResponse(
        status_code=exc.status_code,
        content=error_payload(code=code, message=message, status=exc.status_code, request_id=_rid(request), details=details),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Erreurs de validation Pydantic -> 422 + details=exc.errors()."""
    return UTF8JSONResponse(
        status_code=422,
        content=error_payload(
            code="VALIDATION_ERROR",
            message="Requête invalide",
            status=422,
            request_id=_rid(request),
            # ctx peut contenir des exceptions (ValueError) non sérialisables
            details=jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
        ),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Fallback : toute exception non gérée -> 500 + log serveur."""
    log.exception("Unhandled error: %s", exc)

    return UTF8JSONResponse(
        status_code=500,
        content=error_payload(
            code="INTERNAL_ERROR",
            message="Erreur interne du serveur",
            status=500,
            request_id=_rid(request),
        ),
    )
