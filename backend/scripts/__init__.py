"""
scripts

Package utilitaire pour les scripts de maintenance / data / ML.

Rôle (fonctionnel) :
- Contient des scripts exécutables (CLI) liés au projet :
  - seed_demo : bourses + candidatures décidées synthétiques (SeededRandom)
  - train_model : entraînement global / par bourse / toutes bourses (+ export joblib)
  - model_report : comparaison des modèles entraînés (pandas)

Pourquoi un __init__.py :
- Permet à Python de traiter `scripts/` comme un package.
- Facilite certains imports quand un script réutilise du code applicatif (`from scholarai...`).

Note :
- Les scripts ne doivent pas contenir de logique métier “centrale” :
  ils orchestrent et appellent les modules de `scholarai/` (services, ml, db…).
"""
