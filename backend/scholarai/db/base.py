from datetime import datetime, timezone

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

"""
DB Base.

Rôle (fonctionnel) :
- Définit la classe Base SQLAlchemy commune à tous les modèles ORM.
- Sert de point d’ancrage pour :
  - la déclaration des tables (models/*),
  - la création de schéma (Base.metadata.create_all au démarrage / en tests),
  - l’introspection ORM.

Types portables :
- JSONType : JSONB sur PostgreSQL, JSON générique ailleurs (SQLite en tests).

Note :
- Tous les modèles doivent hériter de Base pour être enregistrés dans la metadata.
"""

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Classe racine ORM (SQLAlchemy Declarative)."""
    pass
