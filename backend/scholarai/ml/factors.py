from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from scholarai.ml.feature_vectorizer import (
    BASE_FEATURE_NAMES,
    FEATURE_CATEGORIES,
    FEATURE_LABELS,
    DEFAULT_CONSTANTS,
    EligibilityResult,
    ScoringConstants,
)
from scholarai.schemas.profile import ApplicantProfile, EligibilityCriteria

"""
ML Factors (explicabilité).

Rôle (fonctionnel) :
- Transforme les contributions w_f * x_f d’une prédiction en “facteurs” lisibles :
  - un facteur par feature de base (les interactions entrent dans z, pas dans la liste),
  - contribution normalisée par la somme des |contributions| des features de base,
  - tri par |contribution brute| décroissante (le plus impactant d’abord),
  - description construite à partir des valeurs du candidat ET des critères de la bourse.

Exemple :
- income_match -> "₱180,000 / ₱250,000 max"
- eligibility_score -> "4/5 criteria met (80%)"
"""


@dataclass(frozen=True)
class Factor:
    feature: str
    label: str
    category: str
    value: float
    weight: float
    raw_contribution: float
    contribution: float
    met: bool
    description: str


def _peso(amount: Optional[float]) -> str:
    return f"₱{(amount or 0):,.0f}"


def _requires(values: List[str]) -> str:
    return f"Requires: {', '.join(values)}"


def describe_feature(
    feature: str,
    value: float,
    profile: ApplicantProfile,
    criteria: EligibilityCriteria,
    eligibility: EligibilityResult,
    c: ScoringConstants = DEFAULT_CONSTANTS,
) -> str:
    """Phrase courte expliquant la valeur d’une feature de base pour CE candidat."""
    matched = value >= c.match

    if feature == "gwa_score":
        if profile.gwa is None:
            return "GWA not provided"
        limit = f" (requires ≤{criteria.max_gwa:g})" if criteria.max_gwa else ""
        return f"GWA of {profile.gwa:.2f}{limit}"

    if feature == "year_level_match":
        if criteria.eligible_classifications:
            if matched:
                return f"{profile.classification} is eligible"
            return _requires(criteria.eligible_classifications)
        return profile.classification or "Year level not set"

    if feature == "income_match":
        if criteria.max_annual_family_income:
            return f"{_peso(profile.annual_family_income)} / {_peso(criteria.max_annual_family_income)} max"
        return f"{_peso(profile.annual_family_income)} annual income"

    if feature == "st_bracket_match":
        if criteria.eligible_st_brackets:
            if matched:
                return f"{profile.st_bracket} qualifies"
            return _requires(criteria.eligible_st_brackets)
        return profile.st_bracket or "ST bracket not set"

    if feature == "college_match":
        if criteria.eligible_colleges:
            return f"{profile.college} is eligible" if matched else "College not eligible"
        return "Open to all colleges"

    if feature == "course_match":
        if criteria.eligible_courses:
            return f"{profile.course} matches" if matched else "Course not in list"
        return "Open to all courses"

    if feature == "citizenship_match":
        required = criteria.citizenship_requirement
        if required and not matched:
            return _requires(required)
        return profile.citizenship or "Not specified"

    if feature == "document_completeness":
        return "Profile complete" if profile.profile_completed else "Profile incomplete"

    if feature == "application_timing":
        return "Based on application submission timing"

    if feature == "eligibility_score":
        return f"{eligibility.matched}/{eligibility.total} criteria met ({round(eligibility.score * 100)}%)"

    return ""


def build_factors(
    features: Mapping[str, float],
    weights: Mapping[str, float],
    profile: ApplicantProfile,
    criteria: EligibilityCriteria,
    eligibility: EligibilityResult,
    c: ScoringConstants = DEFAULT_CONSTANTS,
) -> List[Factor]:
    raw: Dict[str, float] = {
        name: weights.get(name, 0.0) * features[name] for name in BASE_FEATURE_NAMES
    }
    total_abs = sum(abs(v) for v in raw.values())

    factors = [
        Factor(
            feature=name,
            label=FEATURE_LABELS[name],
            category=FEATURE_CATEGORIES[name],
            value=features[name],
            weight=weights.get(name, 0.0),
            raw_contribution=raw[name],
            contribution=raw[name] / total_abs if total_abs > 0 else 0.0,
            met=raw[name] >= 0,
            description=describe_feature(name, features[name], profile, criteria, eligibility, c),
        )
        for name in BASE_FEATURE_NAMES
    ]
    factors.sort(key=lambda f: abs(f.raw_contribution), reverse=True)
    return factors
