"""
scholarai.core

Package “cœur” de l’application : il regroupe tout ce qui est transversal (cross-cutting concerns),
c’est-à-dire ce qui s’applique à plusieurs endpoints/services et qui ne dépend pas d’un domaine
métier spécifique (bourses, candidatures, entraînement, prédiction).

On y trouve :

- settings
  Centralise la configuration (variables d’environnement, hyperparamètres d’entraînement,
  constantes de scoring, calibration de la prédiction, auto-training).

- errors
  Format d’erreur API uniforme (code, message, status, request_id, timestamp) et taxonomie
  des erreurs métier (InsufficientDataError, ConcurrencyLockError, NoTrainedModelError…).

- logging
  Logs JSON (1 event = 1 ligne) enrichis du request_id et d’extras structurés (scope, accuracy…).

- request_id
  Identifiant de corrélation (requête HTTP ou job d’auto-training).

En résumé :
- scholarai.core = infrastructure + conventions (config, logs, erreurs)
- scholarai.ml = moteur de scoring (features, entraînement, résolution, inférence)
- scholarai.api / scholarai.services / scholarai.models = endpoints + use-cases + persistance
"""
