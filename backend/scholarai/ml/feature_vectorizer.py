from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional, Tuple

from scholarai.schemas.profile import ApplicantProfile, EligibilityCriteria

"""
ML Feature Vectorizer.

Rôle (fonctionnel) :
- Convertit un couple (profil candidat, critères de la bourse) en vecteur de 15 features
  numériques nommées (FeatureVector), chacune dans [0, 1].
- Garantit la cohérence entre entraînement et inférence : UNE seule implémentation,
  même ordre (FEATURE_NAMES), mêmes constantes.
- Gère :
  - features numériques (GWA, revenu) normalisées dans le bon sens,
  - features catégorielles “match” (year level, ST bracket, college, course, citoyenneté),
  - complétude du profil, timing de candidature, score d’éligibilité,
  - 5 interactions (produits de paires de features de base).

Notes :
- Toute évolution de FEATURE_NAMES impose de ré-entraîner tous les modèles.
- Les constantes (MATCH, MISMATCH, …) viennent de ScoringConstants (surchargées via settings).
"""

BASE_FEATURE_NAMES: Tuple[str, ...] = (
    "gwa_score",
    "year_level_match",
    "income_match",
    "st_bracket_match",
    "college_match",
    "course_match",
    "citizenship_match",
    "document_completeness",
    "application_timing",
    "eligibility_score",
)

# interaction -> (feature gauche, feature droite)
INTERACTION_FEATURES: Tuple[Tuple[str, Tuple[str, str]], ...] = (
    ("academic_strength", ("gwa_score", "year_level_match")),
    ("financial_need", ("income_match", "st_bracket_match")),
    ("program_fit", ("college_match", "course_match")),
    ("application_quality", ("document_completeness", "application_timing")),
    ("overall_fit", ("eligibility_score", "academic_strength")),
)

FEATURE_NAMES: Tuple[str, ...] = BASE_FEATURE_NAMES + tuple(name for name, _ in INTERACTION_FEATURES)

FEATURE_LABELS: Dict[str, str] = {
    "gwa_score": "Academic Performance (GWA)",
    "year_level_match": "Year Level",
    "income_match": "Financial Need",
    "st_bracket_match": "ST Bracket",
    "college_match": "College",
    "course_match": "Course/Major",
    "citizenship_match": "Citizenship",
    "document_completeness": "Profile Completeness",
    "application_timing": "Application Timing",
    "eligibility_score": "Overall Eligibility",
    "academic_strength": "Academic Strength",
    "financial_need": "Financial Need x ST Bracket",
    "program_fit": "Program Fit",
    "application_quality": "Application Quality",
    "overall_fit": "Overall Fit",
}

FEATURE_CATEGORIES: Dict[str, str] = {
    "gwa_score": "academic",
    "year_level_match": "academic",
    "academic_strength": "academic",
    "income_match": "financial",
    "st_bracket_match": "financial",
    "financial_need": "financial",
    "college_match": "eligibility",
    "course_match": "eligibility",
    "program_fit": "eligibility",
    "eligibility_score": "eligibility",
    "overall_fit": "eligibility",
    "citizenship_match": "demographic",
    "document_completeness": "other",
    "application_timing": "other",
    "application_quality": "other",
}

FeatureVector = Dict[str, float]

DEFAULT_WINDOW_DAYS = 30


@dataclass(frozen=True)
class ScoringConstants:
    """Valeurs fixes des features catégorielles (match > mismatch)."""
    match: float = 1.0
    mismatch: float = 0.85
    no_restriction: float = 0.95
    unknown: float = 0.85
    profile_complete: float = 1.0
    profile_incomplete: float = 0.9
    timing_default: float = 0.9
    income_match_floor: float = 0.9
    neutral: float = 0.5

    @classmethod
    def from_settings(cls, s) -> "ScoringConstants":
        return cls(
            match=s.SCORING_MATCH,
            mismatch=s.SCORING_MISMATCH,
            no_restriction=s.SCORING_NO_RESTRICTION,
            unknown=s.SCORING_UNKNOWN,
            profile_complete=s.SCORING_PROFILE_COMPLETE,
            profile_incomplete=s.SCORING_PROFILE_INCOMPLETE,
            timing_default=s.SCORING_TIMING_DEFAULT,
            income_match_floor=s.SCORING_INCOME_MATCH_FLOOR,
        )


DEFAULT_CONSTANTS = ScoringConstants()


@dataclass(frozen=True)
class ApplicationContext:
    """Dates de la candidature (absentes pour une prédiction “avant candidature”)."""
    applied_at: Optional[datetime] = None
    opens_at: Optional[datetime] = None
    deadline: Optional[datetime] = None


@dataclass(frozen=True)
class EligibilityResult:
    """Proportion de critères explicites satisfaits."""
    score: float
    matched: int
    total: int


# -----------------------------
# Normalisation
# -----------------------------
def _norm_token(value: str) -> str:
    return "".join(value.lower().split())


def _as_utc(dt: datetime) -> datetime:
    # SQLite renvoie des datetimes naïfs : on les considère UTC
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def normalize_gwa(gwa: Optional[float], required_gwa: float = 3.0) -> float:
    """
    GWA (1.0 meilleur .. 5.0 pire) -> [0, 1], plus haut = meilleur.

    - 1.0 -> 1.0, 5.0 -> 0.0 (linéaire)
    - bonus (≤ 0.2) si le seuil requis est respecté
    - valeur absente / hors échelle -> 0.5 (neutre)
    """
    if gwa is None or gwa < 1 or gwa > 5:
        return 0.5
    normalized = (5 - gwa) / 4
    if required_gwa and gwa <= required_gwa:
        bonus = (required_gwa - gwa) / required_gwa * 0.2
        return min(1.0, normalized + bonus)
    return normalized


# -----------------------------
# Match catégoriels
# -----------------------------
def _contains_match(value: str, allowed: Iterable[str]) -> bool:
    """Égalité ou inclusion (espaces ignorés) : 'Junior' vs '3rd Year Junior'."""
    v = _norm_token(value)
    return any(v == _norm_token(a) or _norm_token(a) in v for a in allowed)


def _bidirectional_match(value: str, allowed: Iterable[str]) -> bool:
    """Inclusion dans un sens ou l’autre (noms de college / cours abrégés ou complets)."""
    v = value.lower()
    return any(v in a.lower() or a.lower() in v for a in allowed)


def _exact_match(value: str, allowed: Iterable[str]) -> bool:
    v = value.lower()
    return any(v == a.lower() for a in allowed)


def _categorical(value: Optional[str], allowed, matcher, c: ScoringConstants) -> float:
    if not allowed:
        return c.no_restriction
    if not value:
        return c.unknown
    return c.match if matcher(value, allowed) else c.mismatch


def year_level_match(profile: ApplicantProfile, criteria: EligibilityCriteria, c: ScoringConstants = DEFAULT_CONSTANTS) -> float:
    return _categorical(profile.classification, criteria.eligible_classifications, _contains_match, c)


def st_bracket_match(profile: ApplicantProfile, criteria: EligibilityCriteria, c: ScoringConstants = DEFAULT_CONSTANTS) -> float:
    return _categorical(profile.st_bracket, criteria.eligible_st_brackets, _contains_match, c)


def college_match(profile: ApplicantProfile, criteria: EligibilityCriteria, c: ScoringConstants = DEFAULT_CONSTANTS) -> float:
    return _categorical(profile.college, criteria.eligible_colleges, _bidirectional_match, c)


def course_match(profile: ApplicantProfile, criteria: EligibilityCriteria, c: ScoringConstants = DEFAULT_CONSTANTS) -> float:
    return _categorical(profile.course, criteria.eligible_courses, _bidirectional_match, c)


def citizenship_match(profile: ApplicantProfile, criteria: EligibilityCriteria, c: ScoringConstants = DEFAULT_CONSTANTS) -> float:
    return _categorical(profile.citizenship, criteria.citizenship_requirement, _exact_match, c)


def income_match(profile: ApplicantProfile, criteria: EligibilityCriteria, c: ScoringConstants = DEFAULT_CONSTANTS) -> float:
    """
    Revenu vs plafond de la bourse.

    - pas de plafond -> no_restriction
    - revenu absent / négatif -> unknown
    - au-dessus du plafond -> mismatch
    - sous le plafond -> [floor, 1] : plus le revenu est bas, plus le score est haut
    """
    ceiling = criteria.max_annual_family_income
    if not ceiling:
        return c.no_restriction
    income = profile.annual_family_income
    if income is None or income < 0:
        return c.unknown
    if income > ceiling:
        return c.mismatch
    ratio = income / ceiling
    return c.income_match_floor + (1 - ratio) * (1.0 - c.income_match_floor)


# -----------------------------
# Scores dérivés
# -----------------------------
def calculate_application_timing(context: Optional[ApplicationContext], c: ScoringConstants = DEFAULT_CONSTANTS) -> float:
    """
    Candidature tôt = meilleur signal.

    - pas de date de candidature ou de deadline -> timing_default
    - avant ouverture -> 0.9, après deadline -> 0.1
    - sinon 1.0 -> 0.2 linéairement sur la fenêtre (ouverture par défaut : deadline - 30 jours)
    """
    if context is None or context.applied_at is None or context.deadline is None:
        return c.timing_default

    applied = _as_utc(context.applied_at)
    deadline = _as_utc(context.deadline)
    opens = _as_utc(context.opens_at) if context.opens_at else deadline - timedelta(days=DEFAULT_WINDOW_DAYS)

    window = (deadline - opens).total_seconds()
    since_open = (applied - opens).total_seconds()

    if since_open < 0:
        return 0.9
    if window <= 0 or since_open > window:
        return 0.1
    return 1.0 - (since_open / window) * 0.8


def document_completeness(profile: ApplicantProfile, c: ScoringConstants = DEFAULT_CONSTANTS) -> float:
    return c.profile_complete if profile.profile_completed else c.profile_incomplete


def compute_eligibility(
    profile: ApplicantProfile,
    criteria: EligibilityCriteria,
    c: ScoringConstants = DEFAULT_CONSTANTS,
) -> EligibilityResult:
    """Proportion de critères explicites satisfaits (0.5 si la bourse n’en déclare aucun)."""
    matched = 0
    total = 0

    if criteria.max_gwa:
        total += 1
        if profile.gwa is not None and profile.gwa <= criteria.max_gwa:
            matched += 1

    if criteria.max_annual_family_income:
        total += 1
        income = profile.annual_family_income
        if income is not None and 0 <= income <= criteria.max_annual_family_income:
            matched += 1

    categorical = (
        (criteria.eligible_classifications, year_level_match),
        (criteria.eligible_st_brackets, st_bracket_match),
        (criteria.eligible_colleges, college_match),
        (criteria.eligible_courses, course_match),
        (criteria.citizenship_requirement, citizenship_match),
    )
    for allowed, fn in categorical:
        if allowed:
            total += 1
            if fn(profile, criteria, c) == c.match:
                matched += 1

    score = matched / total if total > 0 else c.neutral
    return EligibilityResult(score=score, matched=matched, total=total)


def add_interactions(base: Dict[str, float]) -> FeatureVector:
    """Complète les features de base avec les 5 interactions (ordre FEATURE_NAMES)."""
    vector: FeatureVector = {name: float(base[name]) for name in BASE_FEATURE_NAMES}
    for name, (left, right) in INTERACTION_FEATURES:
        vector[name] = vector[left] * vector[right]
    return vector


def extract_features(
    profile: ApplicantProfile,
    criteria: EligibilityCriteria,
    context: Optional[ApplicationContext] = None,
    constants: ScoringConstants = DEFAULT_CONSTANTS,
) -> FeatureVector:
    """
    Vectorisation canonique utilisée par :
    - l’entraînement (snapshot candidat + dates de la candidature)
    - la prédiction (profil courant, sans candidature -> timing par défaut)

    Objectif : garantir train == inference (mêmes transformations, même ordre).
    """
    c = constants
    base = {
        "gwa_score": normalize_gwa(profile.gwa, criteria.required_gwa),
        "year_level_match": year_level_match(profile, criteria, c),
        "income_match": income_match(profile, criteria, c),
        "st_bracket_match": st_bracket_match(profile, criteria, c),
        "college_match": college_match(profile, criteria, c),
        "course_match": course_match(profile, criteria, c),
        "citizenship_match": citizenship_match(profile, criteria, c),
        "document_completeness": document_completeness(profile, c),
        "application_timing": calculate_application_timing(context, c),
        "eligibility_score": compute_eligibility(profile, criteria, c).score,
    }
    return add_interactions(base)
