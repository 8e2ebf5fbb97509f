from dataclasses import dataclass, field
from typing import List

from schemas import ApplicantProfile

BASE_SCORE = 50
EMI_SHARE_OF_AVAILABLE_INCOME = 0.6
ASSUMED_TENURE_MONTHS = 12 * 5

EMPLOYMENT_POINTS = {
    "salaried": 20,
    "self_employed": 10,
}

BASIC_SUGGESTIONS = ["Maintain regular income", "Improve credit score", "Reduce existing debt"]
BASIC_PRODUCTS = ["Personal Loan", "Business Loan"]
BASIC_REASONING = "Basic rule-based assessment completed"


@dataclass
class ScoreStep:
    label: str
    delta: int
    score_after: int
    note: str = ""


@dataclass
class EvaluationResult:
    score: int
    recommended_amount: float
    risk_level: str
    suggestions: List[str]
    suitable_products: List[str]
    reasoning: str
    breakdown: List[ScoreStep] = field(default_factory=list)


def total_existing_emi(profile: ApplicantProfile) -> float:
    return sum(loan.monthly_emi for loan in profile.existing_loans)


def debt_to_income_ratio(profile: ApplicantProfile) -> float:
    """Percentage of monthly income already committed to EMIs."""
    return total_existing_emi(profile) / profile.monthly_income * 100


def risk_level_for(score: int) -> str:
    if score >= 70:
        return "low"
    if score >= 50:
        return "medium"
    return "high"


def clamp_recommended_amount(amount: float, requested: float) -> float:
    return max(0.0, min(amount, requested))


def calculate_basic_eligibility(profile: ApplicantProfile) -> EvaluationResult:
    """
    Rule-based eligibility used when the AI assessment cannot be read.
    Pure: same profile in, same result out.
    """
    score = BASE_SCORE
    breakdown: List[ScoreStep] = [
        ScoreStep("Base score", 0, score, note=f"All assessments start at {BASE_SCORE}.")
    ]

    def add_step(label: str, delta: int, note: str = ""):
        nonlocal score
        score += delta
        breakdown.append(ScoreStep(label=label, delta=delta, score_after=score, note=note))

    # ----------------------------
    # Affordability
    # ----------------------------
    total_emi = total_existing_emi(profile)
    available_income = profile.monthly_income - total_emi
    max_emi = available_income * EMI_SHARE_OF_AVAILABLE_INCOME
    # flat affordability over the assumed tenure, not an amortisation
    raw_amount = max_emi * ASSUMED_TENURE_MONTHS
    recommended_amount = clamp_recommended_amount(raw_amount, profile.loan_amount_requested)

    # ----------------------------
    # Employment
    # ----------------------------
    employment_delta = EMPLOYMENT_POINTS.get(profile.employment_type, 0)
    if employment_delta:
        add_step(f"Employment type: {profile.employment_type}", employment_delta)

    months = profile.employment_duration_months
    if months >= 24:
        add_step("Employment duration: 24+ months", +15, note=f"{months} months")
    elif months >= 12:
        add_step("Employment duration: 12+ months", +10, note=f"{months} months")

    # ----------------------------
    # Credit score
    # ----------------------------
    credit_score = profile.credit_score
    if credit_score is not None:
        if credit_score >= 750:
            add_step("Credit score: 750+", +15, note=str(credit_score))
        elif credit_score >= 650:
            add_step("Credit score: 650-749", +10, note=str(credit_score))
        elif credit_score < 600:
            add_step("Credit score: below 600", -20, note=str(credit_score))

    score = max(0, min(100, score))
    breakdown.append(ScoreStep("Final score clamp", 0, score))

    risk_level = risk_level_for(score)
    breakdown.append(ScoreStep("Risk level assigned", 0, score, note=risk_level))

    return EvaluationResult(
        score=score,
        recommended_amount=recommended_amount,
        risk_level=risk_level,
        suggestions=list(BASIC_SUGGESTIONS),
        suitable_products=list(BASIC_PRODUCTS),
        reasoning=BASIC_REASONING,
        breakdown=breakdown,
    )
