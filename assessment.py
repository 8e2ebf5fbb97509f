import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from ai_provider import ChatCompletionsProvider
from database import AssessmentStore
from errors import ParseError, PersistenceError, ProviderError, ValidationError
from evaluator import (
    EvaluationResult,
    ScoreStep,
    calculate_basic_eligibility,
    clamp_recommended_amount,
    debt_to_income_ratio,
)
from schemas import AIAssessmentPayload, ApplicantProfile, EligibilityResult

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_OUTERMOST_OBJECT = re.compile(r"(\{[\s\S]*\})")


def _describe_errors(exc: PydanticValidationError) -> str:
    parts: List[str] = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "body"
        parts.append(f"{location}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts)


def validate_profile(payload: Union[ApplicantProfile, Mapping[str, Any]]) -> ApplicantProfile:
    if isinstance(payload, ApplicantProfile):
        return payload
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    try:
        return ApplicantProfile.model_validate(dict(payload))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid applicant profile: {_describe_errors(e)}") from e


def _format_currency(value: float) -> str:
    return f"₹{value:,.2f}"


def build_assessment_prompt(profile: ApplicantProfile) -> str:
    credit_score = profile.credit_score if profile.credit_score is not None else "Not provided"
    existing_loans = json.dumps([loan.model_dump(by_alias=True) for loan in profile.existing_loans])

    return f"""
As a loan eligibility expert, analyze this loan application and provide a detailed assessment:

Applicant Details:
- Monthly Income: {_format_currency(profile.monthly_income)}
- Employment Type: {profile.employment_type}
- Employment Duration: {profile.employment_duration_months} months
- Credit Score: {credit_score}
- Requested Loan Amount: {_format_currency(profile.loan_amount_requested)}
- Loan Purpose: {profile.loan_purpose or "Not specified"}
- Existing Loans: {existing_loans}

Please provide:
1. Eligibility score (0-100)
2. Recommended loan amount (never more than the requested amount)
3. Risk assessment (one of: low, medium, high)
4. Improvement suggestions
5. Suitable loan products

Respond in JSON format with these fields: eligibilityScore, recommendedAmount, riskLevel, suggestions, suitableProducts, reasoning
""".strip()


def _load_json(text: str):
    text = (text or "").strip()
    candidates: List[str] = []
    if text.startswith("{"):
        candidates.append(text)

    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())

    outer = _OUTERMOST_OBJECT.search(text)
    if outer:
        candidates.append(outer.group(1))

    if not candidates:
        raise ParseError("No JSON object found in AI response")

    last_error = None
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
    raise ParseError(f"AI response is not valid JSON: {last_error.msg}") from last_error


def parse_ai_assessment(text: str, profile: ApplicantProfile) -> EvaluationResult:
    """
    Decode the provider's answer into an EvaluationResult.

    Raises ParseError when the text holds no JSON object or the object does not
    match the expected shape. Score and amount are clamped into range.
    """
    data = _load_json(text)

    if not isinstance(data, dict):
        raise ParseError("AI response JSON is not an object")

    try:
        payload = AIAssessmentPayload.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(f"AI response has unexpected shape: {_describe_errors(e)}") from e

    score = max(0, min(100, int(round(payload.eligibility_score))))
    return EvaluationResult(
        score=score,
        recommended_amount=clamp_recommended_amount(payload.recommended_amount, profile.loan_amount_requested),
        risk_level=payload.risk_level,
        suggestions=list(payload.suggestions),
        suitable_products=list(payload.suitable_products),
        reasoning=payload.reasoning or "AI-assisted assessment completed",
    )


def assemble_result(
    profile: ApplicantProfile,
    evaluation: EvaluationResult,
    source: str,
    calculated_at: Optional[datetime] = None,
) -> EligibilityResult:
    return EligibilityResult(
        eligibility_score=evaluation.score,
        recommended_amount=evaluation.recommended_amount,
        risk_level=evaluation.risk_level,
        debt_to_income_ratio=debt_to_income_ratio(profile),
        suggestions=list(evaluation.suggestions),
        suitable_products=list(evaluation.suitable_products),
        reasoning=evaluation.reasoning,
        calculated_at=calculated_at or datetime.now(timezone.utc),
        source=source,
    )


class LoanAssessmentService:
    """
    Runs one eligibility assessment per call: validate, ask the AI provider,
    fall back to the rule-based calculator when its answer is unreadable,
    then store the record best-effort.
    """

    def __init__(
        self,
        provider: ChatCompletionsProvider,
        store: AssessmentStore,
        fallback_on_provider_error: bool = False,
    ):
        self.provider = provider
        self.store = store
        self.fallback_on_provider_error = fallback_on_provider_error

    def _evaluate(self, profile: ApplicantProfile) -> Tuple[EvaluationResult, str]:
        prompt = build_assessment_prompt(profile)

        try:
            text = self.provider.complete(prompt)
        except ProviderError as e:
            if not self.fallback_on_provider_error:
                raise
            logger.warning("AI provider failed (%s); using rule-based assessment", e.code)
            return calculate_basic_eligibility(profile), "rule_based"

        try:
            return parse_ai_assessment(text, profile), "ai"
        except ParseError as e:
            logger.warning("Could not parse AI assessment (%s); using rule-based assessment", e.message)
            return calculate_basic_eligibility(profile), "rule_based"

    def assess(
        self,
        user_id: str,
        payload: Union[ApplicantProfile, Mapping[str, Any]],
    ) -> Tuple[Optional[str], EligibilityResult]:
        profile = validate_profile(payload)

        evaluation, source = self._evaluate(profile)
        result = assemble_result(profile, evaluation, source)

        breakdown: List[ScoreStep] = evaluation.breakdown
        assessment_id: Optional[str] = None
        try:
            assessment_id = self.store.save(user_id, profile, result, breakdown)
        except PersistenceError as e:
            logger.error("Error saving assessment for user %s: %s", user_id, e.message)

        logger.info(
            "Assessment completed for user %s: score=%s risk=%s source=%s",
            user_id,
            result.eligibility_score,
            result.risk_level,
            source,
        )
        return assessment_id, result
