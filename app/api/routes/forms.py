"""Protected form endpoints.

Form storage, validation and notifications belong to other services; these
handlers are the call sites the rate limit guards protect and return minimal
acknowledgements.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Request

from app.core.rate_limit import (
    RateLimitGuard,
    client_ip,
    current_tier,
    current_user_id,
    fixed_tier,
)
from app.schemas.forms import (
    FormCreatedResponse,
    FormCreateRequest,
    FormListResponse,
    SubmissionAcceptedResponse,
)
from app.schemas.rate_limit import RateLimitExceededResponse
from app.services.quota import LimitClass, Tier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Forms"])

# Public submissions always use the free tier limits, keyed by client IP.
submission_guard = RateLimitGuard(LimitClass.SUBMISSION, client_ip, fixed_tier(Tier.FREE))
api_guard = RateLimitGuard(LimitClass.API, current_user_id, current_tier)
form_creation_guard = RateLimitGuard(LimitClass.FORM_CREATION, current_user_id, current_tier)

RATE_LIMITED_RESPONSES: dict = {
    429: {"model": RateLimitExceededResponse, "description": "Rate limit exceeded"},
}


@router.post(
    "/forms/{form_id}/submit",
    response_model=SubmissionAcceptedResponse,
    dependencies=[Depends(submission_guard)],
    responses=RATE_LIMITED_RESPONSES,
)
async def submit_form(form_id: str, request: Request) -> SubmissionAcceptedResponse:
    """Accept a public form submission.

    Raises:
        RateLimitExceededError: Rendered as 429 when the IP exceeds its quota.
    """
    submission_id = str(uuid.uuid4())
    logger.info("form.submission_accepted", extra={"form_id": form_id})
    return SubmissionAcceptedResponse(form_id=form_id, submission_id=submission_id)


@router.get(
    "/forms",
    response_model=FormListResponse,
    dependencies=[Depends(api_guard)],
    responses=RATE_LIMITED_RESPONSES,
)
async def list_forms(request: Request) -> FormListResponse:
    """List the caller's forms (authenticated API traffic)."""
    return FormListResponse(owner=current_user_id(request), forms=[])


@router.post(
    "/forms",
    response_model=FormCreatedResponse,
    status_code=201,
    dependencies=[Depends(form_creation_guard)],
    responses=RATE_LIMITED_RESPONSES,
)
async def create_form(payload: FormCreateRequest, request: Request) -> FormCreatedResponse:
    """Create a form (long-window quota per user)."""
    form_id = str(uuid.uuid4())
    logger.info("form.created", extra={"form_id": form_id})
    return FormCreatedResponse(id=form_id, name=payload.name, owner=current_user_id(request))
