"""
scholarai.ml

Package “Machine Learning” (cœur algorithmique, sans I/O sauf registry) :
- seeded_random / math_utils : aléatoire reproductible + primitives numériques,
- feature_vectorizer : profil + critères -> 15 features dans [0, 1],
- trainer / cross_validation : régression logistique + validation croisée k-fold,
- model_cache / model_registry : résolution du modèle actif (bourse -> global),
- inference / factors : probabilité calibrée + facteurs lisibles.

Note :
- Tout ce qui est CPU (entraînement) est pur et synchrone : les services l’exécutent
  dans un thread pour ne pas bloquer l’event loop.
"""
