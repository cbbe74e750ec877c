from __future__ import annotations

import argparse

import pandas as pd
from sqlalchemy import create_engine, text

from scholarai.core.settings import settings

"""
Script CLI: model_report

Rôle (fonctionnel) :
- Charge l’historique des modèles entraînés (trained_models) dans un DataFrame pandas.
- Aplatit les métriques JSON (accuracy, f1, écart-type entre folds…) et les stats
  d’entraînement (nombre d’échantillons) pour comparer les modèles côte à côte.
- Affiche le tableau (modèles actifs d’abord, puis par date) et peut l’exporter en CSV.

Usage typique :
- Vérifier qu’un ré-entraînement automatique n’a pas dégradé la précision.
- Comparer modèle global et modèles spécifiques d’une même bourse.
"""

COLUMNS = [
    "name",
    "model_type",
    "scholarship",
    "is_active",
    "trigger_type",
    "accuracy",
    "accuracy_std",
    "f1_score",
    "total_samples",
    "trained_at",
]


def load_models(engine) -> pd.DataFrame:
    q = text("""
        SELECT
            m.id, m.name, m.model_type, m.is_active, m.trigger_type, m.trained_at,
            m.metrics, m.training_stats,
            s.name AS scholarship
        FROM trained_models m
        LEFT JOIN scholarships s ON s.id = m.scholarship_id
    """)
    df = pd.read_sql(q, engine)
    if df.empty:
        return df

    metrics = pd.json_normalize(df["metrics"].tolist())
    stats = pd.json_normalize(df["training_stats"].tolist())

    df = pd.concat(
        [
            df.drop(columns=["metrics", "training_stats"]),
            metrics.reindex(columns=["accuracy", "accuracy_std", "f1_score"]),
            stats.reindex(columns=["total_samples"]),
        ],
        axis=1,
    )
    df["scholarship"] = df["scholarship"].fillna("(global)")
    df["trained_at"] = pd.to_datetime(df["trained_at"], utc=True)
    return df.sort_values(["is_active", "trained_at"], ascending=[False, False])


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--csv", default=None, help="Chemin d’export CSV (optionnel)")
    ap.add_argument("--active-only", action="store_true")
    args = ap.parse_args()

    # Connexion DB sync (scripts)
    engine = create_engine(settings.DATABASE_URL_SYNC)
    df = load_models(engine)

    if df.empty:
        print("Aucun modèle en base. Lancer train_model.py d’abord.")
        return

    if args.active_only:
        df = df[df["is_active"]]

    with pd.option_context("display.max_rows", 200, "display.width", 200, "display.float_format", "{:.3f}".format):
        print(df[COLUMNS].to_string(index=False))

    if args.csv:
        df[COLUMNS].to_csv(args.csv, index=False)
        print("OK - saved:", args.csv)


if __name__ == "__main__":
    main()
