"""
scholarai.services

Package “services” : logique applicative (use-cases) indépendante des endpoints HTTP.

Rôle (fonctionnel) :
- Contient les services qui orchestrent :
  - accès DB (via sessions),
  - entraînement (training_service) et prédiction (prediction_service),
  - ré-entraînement automatique en arrière-plan (auto_training).

Principe :
- scholarai.api = transport HTTP (routes, validation, dépendances)
- scholarai.services = orchestration métier (réutilisable, testable)
- scholarai.ml = algorithmes purs (features, entraînement, inférence)
- scholarai.models / scholarai.schemas = persistance et contrats
"""
