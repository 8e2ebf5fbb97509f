import pytest

from evaluator import (
    BASIC_PRODUCTS,
    BASIC_REASONING,
    BASIC_SUGGESTIONS,
    calculate_basic_eligibility,
    debt_to_income_ratio,
    risk_level_for,
)
from schemas import ApplicantProfile


def make_profile(**overrides) -> ApplicantProfile:
    data = {
        "monthly_income": 30000,
        "employment_type": "other",
        "employment_duration_months": 0,
        "existing_loans": [],
        "credit_score": None,
        "loan_amount_requested": 100000,
        "loan_purpose": "Seeds and fertiliser",
    }
    data.update(overrides)
    return ApplicantProfile(**data)


def test_scenario_salaried_strong_profile(scenario_one):
    result = calculate_basic_eligibility(scenario_one)

    assert result.score == 100
    assert result.risk_level == "low"
    assert result.recommended_amount == 500000


def test_scenario_self_employed_with_existing_emi(scenario_two):
    result = calculate_basic_eligibility(scenario_two)

    assert result.score == 40
    assert result.risk_level == "high"
    assert result.recommended_amount == 200000


def test_static_advice_text():
    result = calculate_basic_eligibility(make_profile())

    assert result.suggestions == BASIC_SUGGESTIONS
    assert result.suitable_products == BASIC_PRODUCTS
    assert result.reasoning == BASIC_REASONING


def test_recommended_amount_below_request_uses_sixty_month_affordability():
    profile = make_profile(monthly_income=10000, loan_amount_requested=1000000)

    result = calculate_basic_eligibility(profile)

    assert result.recommended_amount == pytest.approx(10000 * 0.6 * 60)


def test_debt_above_income_recommends_zero():
    profile = make_profile(
        monthly_income=10000,
        existing_loans=[{"type": "personal", "amount": 500000, "monthly_emi": 15000}],
    )

    result = calculate_basic_eligibility(profile)

    assert result.recommended_amount == 0


@pytest.mark.parametrize(
    "employment_type, expected",
    [("salaried", 70), ("self_employed", 60), ("other", 50), ("farmer", 50)],
)
def test_employment_type_points(employment_type, expected):
    result = calculate_basic_eligibility(make_profile(employment_type=employment_type))
    assert result.score == expected


@pytest.mark.parametrize("months, expected", [(0, 50), (11, 50), (12, 60), (23, 60), (24, 65), (120, 65)])
def test_employment_duration_points(months, expected):
    result = calculate_basic_eligibility(make_profile(employment_duration_months=months))
    assert result.score == expected


@pytest.mark.parametrize(
    "credit_score, expected",
    [(None, 50), (300, 30), (599, 30), (600, 50), (649, 50), (650, 60), (749, 60), (750, 65), (900, 65)],
)
def test_credit_score_points(credit_score, expected):
    result = calculate_basic_eligibility(make_profile(credit_score=credit_score))
    assert result.score == expected


def test_missing_credit_score_is_not_treated_as_zero():
    absent = calculate_basic_eligibility(make_profile(credit_score=None))
    zero = calculate_basic_eligibility(make_profile(credit_score=0))

    assert absent.score == 50
    assert zero.score == 30


def test_crossing_650_never_lowers_score():
    below = calculate_basic_eligibility(make_profile(employment_type="salaried", credit_score=640))
    above = calculate_basic_eligibility(make_profile(employment_type="salaried", credit_score=660))

    assert above.score >= below.score
    assert above.score - below.score == 10


@pytest.mark.parametrize(
    "score, level",
    [(100, "low"), (70, "low"), (69, "medium"), (50, "medium"), (49, "high"), (0, "high")],
)
def test_risk_level_thresholds(score, level):
    assert risk_level_for(score) == level


@pytest.mark.parametrize("employment_type", ["salaried", "self_employed", "other"])
@pytest.mark.parametrize("months", [0, 12, 36])
@pytest.mark.parametrize("credit_score", [None, 350, 620, 700, 820])
@pytest.mark.parametrize("total_emi", [0, 9000, 45000])
def test_outputs_stay_in_bounds(employment_type, months, credit_score, total_emi):
    profile = make_profile(
        monthly_income=40000,
        employment_type=employment_type,
        employment_duration_months=months,
        credit_score=credit_score,
        existing_loans=[{"type": "kcc", "amount": 100000, "monthly_emi": total_emi}],
        loan_amount_requested=750000,
    )

    result = calculate_basic_eligibility(profile)

    assert 0 <= result.score <= 100
    assert 0 <= result.recommended_amount <= profile.loan_amount_requested


def test_same_input_same_output(scenario_two):
    assert calculate_basic_eligibility(scenario_two) == calculate_basic_eligibility(scenario_two)


def test_breakdown_tracks_each_adjustment(scenario_two):
    result = calculate_basic_eligibility(scenario_two)

    labels = [step.label for step in result.breakdown]
    assert labels[0] == "Base score"
    assert "Employment type: self_employed" in labels
    assert "Credit score: below 600" in labels
    assert result.breakdown[-1].score_after == result.score
    assert sum(step.delta for step in result.breakdown) == result.score - 50


def test_debt_to_income_ratio(scenario_two):
    assert debt_to_income_ratio(scenario_two) == pytest.approx(25.0)
