# caseintake/services/case_intake_service.py
"""
Create-case request flow.

    authenticate -> rate limit -> parse JSON -> validate -> orchestrate

Authentication, rate limiting and validation all finish before any case row
is written. Whatever happens, one audit row is written in ``finally``.
"""
import json
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from caseintake.core.logger import logger
from caseintake.db.schemas import CreateCaseResponse
from caseintake.services.api_key_service import api_key_service
from caseintake.services.audit_service import AuditEntry, audit_service
from caseintake.services.case_graph_orchestrator import CaseGraphOrchestrator, CaseGraphResult
from caseintake.services.intake_validator import intake_validator
from caseintake.services.rate_limiter import RateLimiter, SqlAlchemyRateLimitStore
from caseintake.utils.exceptions import (
    IntakeAPIError,
    InternalError,
    ValidationError,
    db_error_summary,
)
from caseintake.utils.helpers import utcnow


@dataclass
class IntakeRequest:
    """Transport-independent view of one HTTP call"""
    body: bytes
    authorization: Optional[str] = None
    endpoint: str = "/api/v1/create-case"
    method: str = "POST"
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    correlation_id: Optional[str] = None


@dataclass
class IntakeOutcome:
    status_code: int
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)
    api_key_id: Optional[int] = None
    result: Optional[CaseGraphResult] = None


def _parse_json(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError(
            [{"field": "body", "message": "Request body must be valid JSON"}],
            message="Invalid JSON body",
        )


class CaseIntakeService:

    def __init__(
        self,
        clock: Callable[[], datetime] = utcnow,
        today: Callable[[], date] = date.today,
    ):
        self.clock = clock
        self.today = today

    def handle(self, db: Session, request: IntakeRequest) -> IntakeOutcome:
        started = time.perf_counter()
        outcome: Optional[IntakeOutcome] = None
        api_key_id: Optional[int] = None
        headers: Dict[str, str] = {}
        payload: Any = None
        error_message: Optional[str] = None

        try:
            api_key = api_key_service.authenticate(db, request.authorization)
            api_key_id = api_key.id

            decision = RateLimiter(SqlAlchemyRateLimitStore(db), clock=self.clock).check(api_key)
            headers = decision.headers()

            payload = _parse_json(request.body)
            intake = intake_validator.validate(payload)
            if intake.documents:
                logger.info("Ignoring %s attached document(s)", len(intake.documents))

            result = CaseGraphOrchestrator(db, today=self.today).run(intake.intake_data)

            response = CreateCaseResponse(
                casefile_id=result.casefile_id,
                clients=result.client_ids,
                defendants=result.defendant_ids,
            )
            outcome = IntakeOutcome(
                status_code=201,
                body=response.model_dump(by_alias=True),
                headers=headers,
                api_key_id=api_key_id,
                result=result,
            )

        except IntakeAPIError as e:
            error_message = e.message
            if e.http_status >= 500:
                logger.error("Create-case failed (%s): %s", e.code, e.message)
            else:
                logger.info("Create-case rejected (%s): %s", e.code, e.message)
            outcome = IntakeOutcome(
                status_code=e.http_status,
                body=e.to_body(),
                headers={**headers, **(e.headers or {})},
                api_key_id=api_key_id,
            )

        except Exception as e:
            logger.exception("Unexpected error during create-case")
            error = InternalError(db_error_summary(e) or "Internal server error")
            error_message = error.message
            outcome = IntakeOutcome(
                status_code=error.http_status,
                body=error.to_body(),
                headers=headers,
                api_key_id=api_key_id,
            )

        finally:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            audit_service.log_request(
                db.get_bind(),
                AuditEntry(
                    endpoint=request.endpoint,
                    method=request.method,
                    status_code=outcome.status_code if outcome else 500,
                    response_time_ms=elapsed_ms,
                    api_key_id=api_key_id,
                    ip_address=request.ip_address,
                    user_agent=request.user_agent,
                    correlation_id=request.correlation_id,
                    request_body=payload,
                    response_body=outcome.body if outcome else None,
                    error_message=error_message,
                ),
            )

        return outcome


# Singleton instance
case_intake_service = CaseIntakeService()
