"""
Create-case intake endpoint
"""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from caseintake.db.database import get_db
from caseintake.services.api_key_service import api_key_service
from caseintake.services.case_intake_service import IntakeRequest, case_intake_service
from caseintake.services.notification_service import notification_service

router = APIRouter()


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.options("/create-case")
def create_case_preflight():
    return Response(status_code=200)


@router.post("/create-case", status_code=201)
async def create_case(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """
    Create a full case graph from one intake submission.

    Authenticated with `Authorization: Bearer <api key>`; returns 201 with
    the new casefile, client and defendant ids.
    """
    intake_request = IntakeRequest(
        body=await request.body(),
        authorization=request.headers.get("authorization"),
        endpoint=request.url.path,
        method=request.method,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        correlation_id=getattr(request.state, "correlation_id", None),
    )

    outcome = await run_in_threadpool(case_intake_service.handle, db, intake_request)

    if outcome.api_key_id is not None:
        background_tasks.add_task(api_key_service.touch_last_used, db.get_bind(), outcome.api_key_id)
    if outcome.result is not None and notification_service.enabled:
        background_tasks.add_task(
            notification_service.notify_case_created,
            outcome.result.casefile_id,
            outcome.result.client_ids,
            outcome.result.defendant_ids,
            intake_request.correlation_id,
        )

    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.body,
        headers=outcome.headers,
    )
