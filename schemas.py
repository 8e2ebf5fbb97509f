import math
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

RiskLevel = Literal["low", "medium", "high"]
AssessmentSource = Literal["ai", "rule_based"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -------------------------
# Inputs
# -------------------------

class ExistingLoan(CamelModel):
    model_config = ConfigDict(frozen=True)

    type: str = ""
    amount: float = Field(0.0, ge=0, allow_inf_nan=False)
    monthly_emi: float = Field(..., ge=0, allow_inf_nan=False)


class ApplicantProfile(CamelModel):
    model_config = ConfigDict(frozen=True)

    monthly_income: float = Field(..., gt=0, allow_inf_nan=False)
    employment_type: str
    employment_duration_months: int = Field(..., ge=0)
    existing_loans: List[ExistingLoan] = Field(default_factory=list)
    credit_score: Optional[int] = Field(None, ge=0)
    loan_amount_requested: float = Field(..., gt=0, allow_inf_nan=False)
    loan_purpose: str = ""

    @field_validator("employment_type")
    @classmethod
    def _normalise_employment_type(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("loan_purpose")
    @classmethod
    def _strip_purpose(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def _debt_is_measurable(self):
        total_emi = sum(loan.monthly_emi for loan in self.existing_loans)
        if not math.isfinite(total_emi) or not math.isfinite(total_emi / self.monthly_income * 100):
            raise ValueError("total monthlyEmi of existingLoans is too large")
        return self


# -------------------------
# AI provider payload
# -------------------------

class AIAssessmentPayload(CamelModel):
    """Shape the provider is asked to answer with. Extra keys are ignored."""

    eligibility_score: float = Field(..., allow_inf_nan=False)
    recommended_amount: float = Field(..., allow_inf_nan=False)
    risk_level: RiskLevel
    suggestions: List[str] = Field(default_factory=list)
    suitable_products: List[str] = Field(default_factory=list)
    reasoning: str = ""

    @field_validator("risk_level", mode="before")
    @classmethod
    def _lower_risk(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("suggestions", "suitable_products", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


# -------------------------
# Outputs
# -------------------------

class EligibilityResult(CamelModel):
    model_config = ConfigDict(frozen=True)

    eligibility_score: int = Field(..., ge=0, le=100)
    recommended_amount: float = Field(..., ge=0)
    risk_level: RiskLevel
    debt_to_income_ratio: float
    suggestions: List[str]
    suitable_products: List[str]
    reasoning: str
    calculated_at: datetime
    source: AssessmentSource


class AssessmentResponse(CamelModel):
    assessment_id: Optional[str]
    eligibility_score: int
    recommended_amount: float
    risk_level: RiskLevel
    debt_to_income_ratio: float
    suggestions: List[str]
    suitable_products: List[str]
    reasoning: str

    @classmethod
    def from_result(cls, assessment_id: Optional[str], result: EligibilityResult) -> "AssessmentResponse":
        return cls(
            assessment_id=assessment_id,
            eligibility_score=result.eligibility_score,
            recommended_amount=result.recommended_amount,
            risk_level=result.risk_level,
            debt_to_income_ratio=result.debt_to_income_ratio,
            suggestions=list(result.suggestions),
            suitable_products=list(result.suitable_products),
            reasoning=result.reasoning,
        )


class AssessmentSummary(CamelModel):
    assessment_id: str
    eligibility_score: int
    risk_level: RiskLevel
    recommended_amount: float
    loan_amount_requested: float
    loan_purpose: str
    source: AssessmentSource
    created_at: datetime


class StoredAssessment(CamelModel):
    assessment_id: str
    profile: ApplicantProfile
    result: EligibilityResult
    created_at: datetime

