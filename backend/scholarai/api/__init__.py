"""
scholarai.api

Couche transport HTTP (FastAPI) : routes, validation des payloads, dépendances.
La logique métier reste dans scholarai.services / scholarai.ml.
"""
