from __future__ import annotations

import argparse
import asyncio
import sys
import uuid

# Windows: compat event loop (évite certains soucis avec drivers async PostgreSQL)
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from scholarai.core.errors import ScoringError
from scholarai.core.logging import setup_logging
from scholarai.core.settings import settings
from scholarai.db.session import AsyncSessionLocal, create_schema
from scholarai.ml.model_cache import ModelWeightsCache
from scholarai.ml.model_registry import ModelRegistry
from scholarai.services.training_service import TrainingService

"""
Script CLI: train_model

Rôle (fonctionnel) :
- Entraîne un modèle de régression logistique (validation croisée k-fold) hors API :
  - --scope global : modèle global (toutes les candidatures décidées),
  - --scope scholarship --scholarship-id <uuid> : modèle d’une bourse,
  - --scope all : toutes les bourses actives ayant assez de données.
- Active le nouveau modèle (désactive l’ancien de même portée).
- --export : écrit aussi un bundle .joblib versionné dans backend/models/
  (weights + bias + liste des features + meta).

Usage typique :
- Première mise en route : seed_demo.py puis train_model.py --scope global
  (sans modèle global, /predict répond 409 NO_TRAINED_MODEL).

Notes :
- Même pipeline que l’API (TrainingService) : features, graine, hyperparamètres identiques.
"""


def _print_outcome(outcome) -> None:
    m = outcome.cross_validation.metrics
    print("OK - model:", outcome.model.id, f"({outcome.model.model_type})")
    print(f"   accuracy: {m.accuracy:.3f} (±{m.accuracy_std:.3f})  f1: {m.f1_score:.3f}")
    print("   folds:", ", ".join(f"{a:.3f}" for a in m.fold_accuracies))
    print(f"   elapsed: {outcome.elapsed_ms} ms")


async def main_async(args) -> int:
    if settings.DB_AUTO_CREATE:
        await create_schema()

    registry = ModelRegistry(ModelWeightsCache(settings.MODEL_CACHE_TTL_SECONDS))
    svc = TrainingService.from_settings(registry, settings)

    async with AsyncSessionLocal() as db:
        try:
            if args.scope == "all":
                results = await svc.train_all_scholarship_models(db, trained_by=args.trained_by)
                for r in results:
                    detail = f"accuracy={r['accuracy']:.3f}" if r["status"] == "success" else r.get("error", "")
                    print(f"{r['name']:<40} {r['status']:<18} n={r['labeled_count']:<5} {detail}")
                return 0

            if args.scope == "global":
                outcome = await svc.train_global_model(db, trained_by=args.trained_by, notes=args.notes)
            else:
                outcome = await svc.train_scholarship_model(
                    db, args.scholarship_id, trained_by=args.trained_by, notes=args.notes
                )
        except ScoringError as exc:
            print(f"ERREUR [{exc.code}] {exc.message}")
            return 1

        _print_outcome(outcome)

        if args.export:
            path = registry.export_bundle(outcome.model)
            print("OK - saved:", path)
    return 0


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--scope", choices=("global", "scholarship", "all"), default="global")
    ap.add_argument("--scholarship-id", type=uuid.UUID, default=None, help="Requis avec --scope scholarship")
    ap.add_argument("--trained-by", default="cli", help="Trace de l’auteur de l’entraînement")
    ap.add_argument("--notes", default=None)
    ap.add_argument("--export", action="store_true", help="Exporte aussi un bundle .joblib dans backend/models/")
    args = ap.parse_args()

    if args.scope == "scholarship" and args.scholarship_id is None:
        ap.error("--scholarship-id est requis avec --scope scholarship")

    setup_logging(settings.LOG_LEVEL)
    sys.exit(asyncio.run(main_async(args)))


if __name__ == "__main__":
    main()
