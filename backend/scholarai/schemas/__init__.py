"""
scholarai.schemas

Package des schémas API (Pydantic).

Rôle (fonctionnel) :
- Définit les modèles d’entrée/sortie utilisés par l’API (request/response).
- Sépare clairement :
  - les modèles ORM (scholarai.models) = persistance DB
  - les schémas Pydantic (scholarai.schemas) = contrat HTTP / validation
- profile : structures d’entrée du moteur (ApplicantProfile, EligibilityCriteria),
  partagées par l’API, l’entraînement et l’inférence.

Usage :
- Les endpoints FastAPI déclarent response_model=... et valident les payloads avec ces schémas.
"""
