import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ai_provider import ChatCompletionsProvider
from assessment import LoanAssessmentService
from auth import TokenIdentityProvider, get_current_user
from config import Settings, get_settings
from database import AssessmentStore
from errors import AssessmentError, NotFoundError, ValidationError
from schemas import AssessmentResponse, AssessmentSummary, StoredAssessment

logger = logging.getLogger(__name__)


def get_assessment_service(request: Request) -> LoanAssessmentService:
    return request.app.state.assessment_service


def get_store(request: Request) -> AssessmentStore:
    return request.app.state.store


def create_app(
    settings: Optional[Settings] = None,
    provider=None,
    store: Optional[AssessmentStore] = None,
    identity: Optional[TokenIdentityProvider] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    provider = provider or ChatCompletionsProvider(
        url=settings.AI_GATEWAY_URL,
        api_key=settings.AI_API_KEY,
        model=settings.AI_MODEL,
        temperature=settings.AI_TEMPERATURE,
        timeout=settings.AI_TIMEOUT_SECONDS,
    )
    store = store or AssessmentStore(settings.DB_PATH)
    identity = identity or TokenIdentityProvider(settings.SECRET_KEY, settings.TOKEN_MAX_AGE_SECONDS)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.init_db()
        logger.info("Assessment store ready at %s", store.db_path)
        yield

    app = FastAPI(title="Rural Loan Advisor", version="1.0.0", lifespan=lifespan)
    app.state.store = store
    app.state.identity = identity
    app.state.assessment_service = LoanAssessmentService(
        provider,
        store,
        fallback_on_provider_error=settings.FALLBACK_ON_PROVIDER_ERROR,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    @app.exception_handler(AssessmentError)
    async def assessment_error_handler(request: Request, exc: AssessmentError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid value')}"
            for err in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {details}"})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"error": "Assessment failed"})

    @app.get("/health")
    def health_check():
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.post("/loan-eligibility-check", response_model=AssessmentResponse)
    async def loan_eligibility_check(
        request: Request,
        user_id: str = Depends(get_current_user),
        service: LoanAssessmentService = Depends(get_assessment_service),
    ):
        # body is read only after the caller is authenticated
        try:
            payload = await request.json()
        except ValueError as e:
            raise ValidationError("Request body must be valid JSON") from e

        assessment_id, result = await run_in_threadpool(service.assess, user_id, payload)
        return AssessmentResponse.from_result(assessment_id, result)

    @app.get("/assessments", response_model=List[AssessmentSummary])
    def assessment_history(
        limit: int = Query(20, ge=1, le=100),
        user_id: str = Depends(get_current_user),
        store: AssessmentStore = Depends(get_store),
    ):
        return store.list_for_user(user_id, limit=limit)

    @app.get("/assessments/{assessment_id}", response_model=StoredAssessment)
    def assessment_detail(
        assessment_id: str,
        user_id: str = Depends(get_current_user),
        store: AssessmentStore = Depends(get_store),
    ):
        stored = store.get_for_user(user_id, assessment_id)
        if not stored:
            raise NotFoundError("Assessment not found")
        return stored

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
