"""Pydantic schemas for the protected form endpoints."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class SubmissionAcceptedResponse(BaseModel):
    """Acknowledgement of a public form submission."""

    success: bool = Field(True, description="Submission was accepted.")
    form_id: str = Field(..., description="Target form id.")
    submission_id: str = Field(..., description="Generated submission id.")


class FormCreateRequest(BaseModel):
    """Payload to create a form."""

    name: str = Field(..., min_length=1, max_length=200, description="Form display name.")


class FormCreatedResponse(BaseModel):
    """Created form."""

    id: str = Field(..., description="Generated form id.")
    name: str = Field(..., description="Form display name.")
    owner: str = Field(..., description="Owner user id ('anonymous' when unauthenticated).")


class FormListResponse(BaseModel):
    """Forms owned by the caller."""

    owner: str = Field(..., description="Owner user id.")
    forms: List[FormCreatedResponse] = Field(default_factory=list)
