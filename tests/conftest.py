# tests/conftest.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from scholarai.db.session import create_schema
from scholarai.ml.feature_vectorizer import extract_features
from scholarai.ml.model_cache import ModelWeightsCache
from scholarai.ml.model_registry import ModelRegistry
from scholarai.ml.seeded_random import SeededRandom
from scholarai.ml.trainer import Sample, TrainingConfig
from scholarai.models.application import Application
from scholarai.models.scholarship import Scholarship
from scholarai.schemas.profile import ApplicantProfile, EligibilityCriteria
from scholarai.services.training_service import TrainingService

CRITERIA = {
    "max_gwa": 2.0,
    "max_annual_family_income": 300000,
    "eligible_colleges": ["College of Engineering"],
    "eligible_classifications": ["Junior", "Senior"],
}


def strong_profile(rng: SeededRandom) -> ApplicantProfile:
    return ApplicantProfile(
        gwa=round(1.1 + rng.next() * 0.6, 2),
        classification="Senior" if rng.next() < 0.5 else "Junior",
        annual_family_income=float(int(80000 + rng.next() * 150000)),
        st_bracket="FD",
        college="College of Engineering",
        course="BS Civil Engineering",
        citizenship="Filipino",
        profile_completed=True,
    )


def weak_profile(rng: SeededRandom) -> ApplicantProfile:
    return ApplicantProfile(
        gwa=round(2.6 + rng.next() * 1.4, 2),
        classification="Freshman",
        annual_family_income=float(int(400000 + rng.next() * 300000)),
        st_bracket="ND",
        college="College of Arts and Sciences",
        course="BS Biology",
        citizenship="Filipino",
        profile_completed=rng.next() < 0.5,
    )


def make_samples(n: int, seed: int = 7) -> List[Sample]:
    """Échantillons séparables : pairs = candidats solides (1), impairs = faibles (0)."""
    rng = SeededRandom(seed)
    criteria = EligibilityCriteria.model_validate(CRITERIA)
    samples = []
    for i in range(n):
        if i % 2 == 0:
            samples.append(Sample(features=extract_features(strong_profile(rng), criteria), label=1))
        else:
            samples.append(Sample(features=extract_features(weak_profile(rng), criteria), label=0))
    return samples


async def add_scholarship(
    db: AsyncSession,
    *,
    name: str = "Engineering Futures Scholarship",
    decided: int = 12,
    pending: int = 0,
    seed: int = 1,
    criteria: Optional[dict] = None,
) -> Scholarship:
    """Bourse + `decided` candidatures décidées (alternance approved / rejected) + pending."""
    rng = SeededRandom(seed)
    opens = datetime.now(timezone.utc) - timedelta(days=60)
    sch = Scholarship(
        id=uuid.uuid4(),
        name=name,
        scholarship_type="private",
        eligibility_criteria=criteria if criteria is not None else CRITERIA,
        application_start_date=opens,
        application_deadline=opens + timedelta(days=30),
    )
    db.add(sch)
    await db.flush()

    for i in range(decided + pending):
        approved = i % 2 == 0
        profile = strong_profile(rng) if approved else weak_profile(rng)
        submitted = opens + timedelta(days=1 + i % 25)
        if i < decided:
            status = "approved" if approved else "rejected"
        else:
            status = "pending"
        db.add(
            Application(
                id=uuid.uuid4(),
                scholarship_id=sch.id,
                applicant_snapshot=profile.model_dump(),
                status=status,
                created_at=submitted,
                submitted_at=submitted,
                decided_at=submitted + timedelta(days=40) if status != "pending" else None,
                decided_by="reviewer" if status != "pending" else None,
            )
        )
    await db.commit()
    return sch


@pytest.fixture
def fast_config() -> TrainingConfig:
    return TrainingConfig(epochs=40, early_stopping_patience=10, k_folds=3)


@pytest.fixture
async def engine(tmp_path: Path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'scholarai.db'}")
    await create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def registry() -> ModelRegistry:
    return ModelRegistry(ModelWeightsCache(ttl_seconds=300))


@pytest.fixture
def training_service(registry, fast_config) -> TrainingService:
    return TrainingService(registry, fast_config, min_samples_global=20, min_samples_scholarship=10)
