# tests/test_inference.py
import math
import uuid

import pytest

from scholarai.ml.factors import describe_feature
from scholarai.ml.feature_vectorizer import BASE_FEATURE_NAMES, FEATURE_NAMES, compute_eligibility
from scholarai.ml.inference import (
    DISCLAIMER_GLOBAL,
    DISCLAIMER_SCHOLARSHIP,
    OUTCOME_NEGATIVE,
    OUTCOME_POSITIVE,
    PredictionConfig,
    calculate_confidence,
    predict_with_model,
)
from scholarai.ml.model_registry import ResolvedModel
from scholarai.models.trained_model import MODEL_TYPE_GLOBAL, MODEL_TYPE_SCHOLARSHIP
from scholarai.schemas.profile import ApplicantProfile, EligibilityCriteria

PROFILE = ApplicantProfile(
    gwa=1.5,
    classification="Junior",
    annual_family_income=180000,
    college="College of Engineering",
    course="BS Civil Engineering",
    citizenship="Filipino",
    profile_completed=True,
)
CRITERIA = EligibilityCriteria(
    max_gwa=2.0,
    max_annual_family_income=250000,
    eligible_classifications=["Junior", "Senior"],
    eligible_colleges=["College of Engineering"],
)


def model(weights, bias=0.0, model_type=MODEL_TYPE_SCHOLARSHIP):
    return ResolvedModel(weights=weights, bias=bias, model_type=model_type, model_id=uuid.uuid4())


@pytest.mark.parametrize(
    "p, expected",
    [(0.5, "low"), (0.55, "low"), (0.65, "medium"), (0.35, "medium"), (0.85, "high"), (0.05, "high")],
)
def test_confidence_bands(p, expected):
    assert calculate_confidence(p) == expected


def test_zero_model_is_a_coin_flip():
    res = predict_with_model(model({}), PROFILE, CRITERIA)

    assert res.probability == 0.5
    assert res.probability_percentage == 50
    assert res.predicted_outcome == OUTCOME_POSITIVE
    assert res.confidence == "low"
    assert all(f.contribution == 0.0 for f in res.factors)


def test_temperature_softens_logit():
    res = predict_with_model(model({}, bias=-2.0), PROFILE, CRITERIA, PredictionConfig(temperature=2.0))

    assert res.z_score == -2.0
    assert res.intercept == -2.0
    assert res.probability == pytest.approx(1 / (1 + math.exp(1.0)))
    assert res.predicted_outcome == OUTCOME_NEGATIVE


def test_global_model_scales_eligibility_and_rebuilds_interactions():
    weights = {"eligibility_score": 1.0}
    specific = predict_with_model(model(weights), PROFILE, CRITERIA)
    shared = predict_with_model(model(weights, model_type=MODEL_TYPE_GLOBAL), PROFILE, CRITERIA)

    assert specific.features["eligibility_score"] == 1.0
    assert shared.features["eligibility_score"] == pytest.approx(0.85)
    assert shared.features["overall_fit"] == pytest.approx(0.85 * shared.features["academic_strength"])
    assert shared.z_score == pytest.approx(0.85)
    assert shared.probability < specific.probability

    assert specific.disclaimer == DISCLAIMER_SCHOLARSHIP
    assert shared.disclaimer == DISCLAIMER_GLOBAL
    assert shared.model_type == MODEL_TYPE_GLOBAL


def test_z_uses_all_fifteen_features():
    weights = {name: 0.1 for name in FEATURE_NAMES}
    res = predict_with_model(model(weights, bias=0.3), PROFILE, CRITERIA)

    assert res.z_score == pytest.approx(0.3 + 0.1 * sum(res.features.values()))


def test_factors_sorted_and_normalized():
    weights = {name: (i - 4) * 0.5 for i, name in enumerate(BASE_FEATURE_NAMES)}
    weights["overall_fit"] = 3.0

    res = predict_with_model(model(weights), PROFILE, CRITERIA)
    factors = res.factors

    assert [f.feature for f in factors if f.feature not in BASE_FEATURE_NAMES] == []
    assert len(factors) == len(BASE_FEATURE_NAMES)

    raws = [abs(f.raw_contribution) for f in factors]
    assert raws == sorted(raws, reverse=True)
    assert sum(abs(f.contribution) for f in factors) == pytest.approx(1.0)

    for f in factors:
        assert f.met == (f.raw_contribution >= 0)
        assert f.label
        assert f.category in {"academic", "financial", "eligibility", "demographic", "other"}


def test_factor_descriptions():
    eligibility = compute_eligibility(PROFILE, CRITERIA)

    assert describe_feature("income_match", 0.93, PROFILE, CRITERIA, eligibility) == "₱180,000 / ₱250,000 max"
    assert describe_feature("gwa_score", 0.9, PROFILE, CRITERIA, eligibility) == "GWA of 1.50 (requires ≤2)"
    assert describe_feature("course_match", 0.95, PROFILE, CRITERIA, eligibility) == "Open to all courses"
    assert describe_feature("eligibility_score", 1.0, PROFILE, CRITERIA, eligibility) == "4/4 criteria met (100%)"

    freshman = ApplicantProfile(classification="Freshman")
    assert describe_feature("year_level_match", 0.85, freshman, CRITERIA, eligibility) == "Requires: Junior, Senior"
