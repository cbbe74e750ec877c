"""
scholarai.db

Package base de données : connexion, session et helpers d’accès DB.

Contenu typique :
- base : classe Base ORM + types portables (JSON / JSONB).
- session : création et fourniture des sessions SQLAlchemy (async) pour FastAPI (Depends(get_db)).
"""
