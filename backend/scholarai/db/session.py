from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from scholarai.core.settings import settings
from scholarai.db.base import Base

"""
DB Session.

Rôle (fonctionnel) :
- Initialise l’engine SQLAlchemy en mode async (runtime FastAPI).
- Fournit une factory de sessions AsyncSession (AsyncSessionLocal).
- Expose `get_db()` comme dépendance FastAPI pour injecter une session DB
  dans les endpoints/services (Depends(get_db)).
- Expose `create_schema()` : création des tables au démarrage (DB_AUTO_CREATE) et en tests.

Notes :
- expire_on_commit=False : permet de réutiliser les objets après commit sans rechargement automatique.
- echo=False : désactive le log SQL brut (on préfère les logs applicatifs en JSON).
- L’auto-entraînement ouvre ses propres sessions via AsyncSessionLocal (hors requête HTTP).
"""

# Engine async utilisé par l’application (SQLAlchemy async)
engine = create_async_engine(settings.DATABASE_URL, echo=False)

# Factory de sessions async
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_schema(bind: AsyncEngine = engine) -> None:
    """Crée les tables manquantes (idempotent)."""
    import scholarai.models  # noqa: F401  (enregistre les tables dans la metadata)

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """Dépendance FastAPI : yield une session DB et garantit sa fermeture."""
    async with AsyncSessionLocal() as session:
        yield session
