# backend/scripts/seed_demo.py
from __future__ import annotations

import argparse
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import uuid4

from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker

# Permet de lancer le script depuis backend/ sans souci d'import
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from scholarai.core.settings import settings
from scholarai.db.base import Base
from scholarai.ml.feature_vectorizer import compute_eligibility, normalize_gwa
from scholarai.ml.seeded_random import SeededRandom
from scholarai.models.application import Application
from scholarai.models.scholarship import Scholarship
from scholarai.models.trained_model import TrainedModel
from scholarai.schemas.profile import ApplicantProfile, EligibilityCriteria

"""
Script CLI: seed_demo

Rôle (fonctionnel) :
- Génère des bourses réalistes (critères GWA / revenu / college / ST bracket…) et des
  candidatures décidées (approved / rejected) + quelques pending.
- La décision est tirée d’une probabilité qui dépend de l’éligibilité et du GWA :
  un modèle entraîné sur ces données doit donc apprendre un signal réel.
- Tout l’aléatoire passe par SeededRandom : deux seeds identiques -> mêmes données.

Usage typique :
- python scripts/seed_demo.py --reset --per-scholarship 60
- puis python scripts/train_model.py --scope global
"""

# ---- Données réalistes (UPLB-friendly) ----
COLLEGES = {
    "College of Arts and Sciences": ["BS Computer Science", "BS Biology", "BS Mathematics", "BS Statistics"],
    "College of Engineering and Agro-Industrial Technology": ["BS Civil Engineering", "BS Chemical Engineering", "BS Agricultural and Biosystems Engineering"],
    "College of Agriculture and Food Science": ["BS Agriculture", "BS Food Technology"],
    "College of Economics and Management": ["BS Economics", "BS Accountancy", "BS Agribusiness Management"],
    "College of Forestry and Natural Resources": ["BS Forestry"],
    "College of Human Ecology": ["BS Nutrition", "BS Human Ecology"],
}
CLASSIFICATIONS = ["Freshman", "Sophomore", "Junior", "Senior"]
ST_BRACKETS = ["FDS", "FD", "PD80", "PD60", "PD40", "PD20", "ND"]

SCHOLARSHIPS = [
    {
        "name": "Academic Excellence Grant",
        "scholarship_type": "university",
        "criteria": {"max_gwa": 1.75, "eligible_classifications": ["Sophomore", "Junior", "Senior"]},
    },
    {
        "name": "Financial Assistance Program",
        "scholarship_type": "government",
        "criteria": {"max_gwa": 2.5, "max_annual_family_income": 250000, "eligible_st_brackets": ["FDS", "FD", "PD80"]},
    },
    {
        "name": "Engineering Futures Scholarship",
        "scholarship_type": "private",
        "criteria": {
            "max_gwa": 2.25,
            "eligible_colleges": ["College of Engineering and Agro-Industrial Technology"],
            "is_filipino_only": True,
        },
    },
    {
        "name": "Agri-Science Leaders Fund",
        "scholarship_type": "private",
        "criteria": {
            "max_gwa": 2.5,
            "eligible_colleges": ["College of Agriculture and Food Science", "College of Forestry and Natural Resources"],
            "max_annual_family_income": 400000,
        },
    },
    {
        "name": "Computing Talent Award",
        "scholarship_type": "thesis_grant",
        "criteria": {"max_gwa": 2.0, "eligible_courses": ["BS Computer Science", "BS Statistics"], "eligible_classifications": ["Junior", "Senior"]},
    },
]


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _choice(rng: SeededRandom, items):
    return items[rng.next_int(len(items))]


def random_profile(rng: SeededRandom) -> ApplicantProfile:
    college = _choice(rng, list(COLLEGES))
    return ApplicantProfile(
        gwa=round(1.0 + rng.next() * 2.0, 2),
        classification=_choice(rng, CLASSIFICATIONS),
        annual_family_income=float(int(60000 + rng.next() * 540000)),
        st_bracket=_choice(rng, ST_BRACKETS),
        college=college,
        course=_choice(rng, COLLEGES[college]),
        citizenship="Filipino" if rng.next() < 0.95 else "Other",
        profile_completed=rng.next() < 0.85,
    )


def approval_probability(profile: ApplicantProfile, criteria: EligibilityCriteria) -> float:
    eligibility = compute_eligibility(profile, criteria).score
    academic = normalize_gwa(profile.gwa, criteria.required_gwa)
    p = 0.05 + 0.6 * eligibility + 0.3 * academic
    if not profile.profile_completed:
        p -= 0.1
    return max(0.02, min(0.98, p))


def seed(reset: bool, per_scholarship: int, pending: int, seed_value: int) -> None:
    engine = create_engine(settings.DATABASE_URL_SYNC, future=True)
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    rng = SeededRandom(seed_value)

    with SessionLocal() as db:
        if reset:
            # ordre inverse des FK
            db.execute(delete(TrainedModel))
            db.execute(delete(Application))
            db.execute(delete(Scholarship))
            db.commit()
            print("✅ Reset done (all demo data deleted).")

        approved_count = 0
        rejected_count = 0

        for entry in SCHOLARSHIPS:
            opens = now_utc() - timedelta(days=60)
            deadline = opens + timedelta(days=30)

            sch = Scholarship(
                id=uuid4(),
                name=entry["name"],
                scholarship_type=entry["scholarship_type"],
                status="active",
                eligibility_criteria=entry["criteria"],
                application_start_date=opens,
                application_deadline=deadline,
            )
            db.add(sch)
            db.flush()

            criteria = EligibilityCriteria.model_validate(entry["criteria"])

            for i in range(per_scholarship + pending):
                profile = random_profile(rng)
                submitted_at = opens + timedelta(seconds=int(rng.next() * 30 * 24 * 3600))

                if i < per_scholarship:
                    status = "approved" if rng.next() < approval_probability(profile, criteria) else "rejected"
                    decided_at = deadline + timedelta(days=7)
                else:
                    status = "pending"
                    decided_at = None

                if status == "approved":
                    approved_count += 1
                elif status == "rejected":
                    rejected_count += 1

                db.add(
                    Application(
                        id=uuid4(),
                        scholarship_id=sch.id,
                        applicant_snapshot=profile.model_dump(),
                        status=status,
                        created_at=submitted_at,
                        submitted_at=submitted_at,
                        decided_at=decided_at,
                        decided_by="seed" if decided_at else None,
                    )
                )

            db.commit()
            print(f"… {sch.name}: {per_scholarship + pending} candidatures")

        print("✅ Seed terminé.")
        print(f"   - Bourses ajoutées: {len(SCHOLARSHIPS)}")
        print(f"   - Candidatures approuvées: {approved_count}")
        print(f"   - Candidatures rejetées: {rejected_count}")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--reset", action="store_true", help="Supprime les données demo avant de reseed")
    parser.add_argument("--per-scholarship", type=int, default=60, help="Candidatures décidées par bourse")
    parser.add_argument("--pending", type=int, default=5, help="Candidatures en attente par bourse")
    parser.add_argument("--seed", type=int, default=42, help="Seed RNG pour reproductibilité")
    args = parser.parse_args()

    seed(reset=args.reset, per_scholarship=args.per_scholarship, pending=args.pending, seed_value=args.seed)


if __name__ == "__main__":
    main()
