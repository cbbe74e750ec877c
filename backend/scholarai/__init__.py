"""
scholarai

Package racine du backend ScholarAI (prédiction d’approbation de bourses).

Rôle (fonctionnel) :
- Contient tout le code applicatif (API, logique métier, accès DB, ML, schémas).
- Sert de point d’ancrage pour les imports : `from scholarai...`

Organisation (haute-level) :
- scholarai.api      : routes FastAPI (contrats HTTP, dépendances, sérialisation)
- scholarai.core     : briques transverses (settings, errors, logs, request_id)
- scholarai.db       : base SQLAlchemy + session async
- scholarai.models   : modèles ORM (bourses, candidatures, modèles entraînés)
- scholarai.schemas  : schémas Pydantic (entrées/sorties API + profil / critères)
- scholarai.services : use-cases (entraînement, prédiction, auto-training)
- scholarai.ml       : features, régression logistique, validation croisée, inférence
"""
