from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from scholarai.ml.factors import Factor, build_factors
from scholarai.ml.feature_vectorizer import (
    BASE_FEATURE_NAMES,
    DEFAULT_CONSTANTS,
    FEATURE_NAMES,
    ApplicationContext,
    FeatureVector,
    ScoringConstants,
    add_interactions,
    compute_eligibility,
    extract_features,
)
from scholarai.ml.math_utils import sigmoid
from scholarai.ml.model_registry import ResolvedModel
from scholarai.schemas.profile import ApplicantProfile, EligibilityCriteria

"""
ML Inference.

Rôle (fonctionnel) :
- Applique un modèle résolu (ResolvedModel, voir model_registry) à un profil candidat.
- Transforme profil + critères en vecteur (extract_features), EXACTEMENT comme à l’entraînement.
- Calcule z = biais + Σ w_f x_f puis p = sigmoid(z / T) (température T > 1 : évite la saturation
  quand les candidats éligibles ont tous des features élevées).
- Produit : probabilité, pourcentage, issue prédite, confiance, facteurs classés.

Comportement :
- Modèle global : eligibility_score est multiplié par GLOBAL_ELIGIBILITY_FACTOR (< 1) puis
  les interactions sont recalculées (un modèle global surestime une bourse donnée).
- Issue : likely_approved si p >= 0.5, sinon needs_improvement.
- Confiance selon la distance à 0.5 : high (>= 0.30), medium (>= 0.10), sinon low.

Notes :
- La température et le facteur global sont des réglages de calibration (settings), pas des
  constantes dérivées : les modifier ne demande pas de ré-entraîner.
"""

OUTCOME_POSITIVE = "likely_approved"
OUTCOME_NEGATIVE = "needs_improvement"

DISCLAIMER_SCHOLARSHIP = "Prediction based on this scholarship's historical approval patterns."
DISCLAIMER_GLOBAL = "Prediction based on historical patterns across all scholarships (global model)."


@dataclass(frozen=True)
class PredictionConfig:
    temperature: float = 2.0
    global_eligibility_factor: float = 0.85
    constants: ScoringConstants = DEFAULT_CONSTANTS

    @classmethod
    def from_settings(cls, s) -> "PredictionConfig":
        return cls(
            temperature=s.PREDICTION_TEMPERATURE,
            global_eligibility_factor=s.GLOBAL_ELIGIBILITY_FACTOR,
            constants=ScoringConstants.from_settings(s),
        )


@dataclass(frozen=True)
class PredictionResult:
    """Résultat d’inférence standardisé."""
    probability: float
    probability_percentage: int
    predicted_outcome: str
    confidence: str
    z_score: float
    intercept: float
    model_type: str
    model_id: str
    disclaimer: str
    features: FeatureVector = field(default_factory=dict)
    factors: List[Factor] = field(default_factory=list)


def calculate_confidence(probability: float) -> str:
    distance = abs(probability - 0.5)
    if distance >= 0.30:
        return "high"
    if distance >= 0.10:
        return "medium"
    return "low"


def predict_with_model(
    resolved: ResolvedModel,
    profile: ApplicantProfile,
    criteria: EligibilityCriteria,
    config: PredictionConfig = PredictionConfig(),
    context: Optional[ApplicationContext] = None,
) -> PredictionResult:
    """
    Prédiction complète pour un modèle déjà résolu.

    - context absent : prédiction “avant candidature” (timing par défaut)
    """
    c = config.constants
    features = extract_features(profile, criteria, context, c)

    if resolved.is_global:
        base = {name: features[name] for name in BASE_FEATURE_NAMES}
        base["eligibility_score"] *= config.global_eligibility_factor
        features = add_interactions(base)

    z = resolved.bias
    for name in FEATURE_NAMES:
        z += resolved.weights.get(name, 0.0) * features[name]

    probability = sigmoid(z / config.temperature)

    factors = build_factors(
        features,
        resolved.weights,
        profile,
        criteria,
        compute_eligibility(profile, criteria, c),
        c,
    )

    return PredictionResult(
        probability=probability,
        probability_percentage=int(round(probability * 100)),
        predicted_outcome=OUTCOME_POSITIVE if probability >= 0.5 else OUTCOME_NEGATIVE,
        confidence=calculate_confidence(probability),
        z_score=z,
        intercept=resolved.bias,
        model_type=resolved.model_type,
        model_id=str(resolved.model_id),
        disclaimer=DISCLAIMER_GLOBAL if resolved.is_global else DISCLAIMER_SCHOLARSHIP,
        features=features,
        factors=factors,
    )
