"""Framework registry routes.

Frameworks and their immutable versions live under /v1/frameworks; a
version's bindings and resolved question set live under
/v1/framework-versions/{version_id}.
"""

from typing import Any

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, Field

from riskprofile.api.deps import get_registry, get_resolver
from riskprofile.models.framework import (
    Framework,
    FrameworkVersion,
    QuestionBinding,
    ResolvedQuestion,
)
from riskprofile.services.frameworks.registry import BindQuestionInput, CreateFrameworkInput

router = APIRouter(prefix="/v1", tags=["Frameworks"])


class PublishVersionRequest(BaseModel):
    """Request body for POST /v1/frameworks/{code}/versions."""

    config: dict[str, Any] = Field(..., description="Scoring configuration document")
    activate: bool = Field(default=False, description="Make the new version the default")
    legacy: bool = Field(default=False, description="Convert from a legacy document shape")


class FrameworkList(BaseModel):
    items: list[Framework]


class FrameworkVersionList(BaseModel):
    items: list[FrameworkVersion]


class BindingList(BaseModel):
    version_id: str
    items: list[QuestionBinding]


class ResolvedQuestionList(BaseModel):
    """Resolved question set of a version, in display order."""

    version_id: str
    items: list[ResolvedQuestion]


@router.post("/frameworks", response_model=Framework, status_code=201)
def create_framework(request: Request, body: CreateFrameworkInput) -> Framework:
    return get_registry(request).create_framework(body)


@router.get("/frameworks", response_model=FrameworkList)
def list_frameworks(request: Request) -> FrameworkList:
    return FrameworkList(items=get_registry(request).list_frameworks())


@router.get("/frameworks/{code}", response_model=Framework)
def get_framework(request: Request, code: str) -> Framework:
    return get_registry(request).get_framework(code)


@router.get("/frameworks/{code}/versions", response_model=FrameworkVersionList)
def list_framework_versions(request: Request, code: str) -> FrameworkVersionList:
    return FrameworkVersionList(items=get_registry(request).list_versions(code))


@router.post("/frameworks/{code}/versions", response_model=FrameworkVersion, status_code=201)
def publish_framework_version(
    request: Request, code: str, body: PublishVersionRequest
) -> FrameworkVersion:
    """Validate a scoring configuration and publish it as the next version.

    Invalid configurations are rejected with 422 and every problem found.
    """
    return get_registry(request).publish_version(
        code, body.config, activate=body.activate, legacy=body.legacy
    )


@router.post("/frameworks/{code}/versions/{version_id}/activate", response_model=FrameworkVersion)
def activate_framework_version(request: Request, code: str, version_id: str) -> FrameworkVersion:
    """Make the version the framework's only default version."""
    return get_registry(request).activate_version(code, version_id)


@router.get("/frameworks/{code}/active-version", response_model=FrameworkVersion)
def get_active_framework_version(request: Request, code: str) -> FrameworkVersion:
    return get_registry(request).get_active_version(code)


@router.get("/framework-versions/{version_id}", response_model=FrameworkVersion)
def get_framework_version(request: Request, version_id: str) -> FrameworkVersion:
    return get_registry(request).get_version(version_id)


@router.get("/framework-versions/{version_id}/questions", response_model=ResolvedQuestionList)
def get_resolved_questions(request: Request, version_id: str) -> ResolvedQuestionList:
    """Resolve the version's current bindings against the live catalog.

    This is a preview; submissions keep their own frozen copy.
    """
    items = get_resolver(request).resolve(version_id)
    return ResolvedQuestionList(version_id=version_id, items=items)


@router.get("/framework-versions/{version_id}/bindings", response_model=BindingList)
def list_bindings(request: Request, version_id: str) -> BindingList:
    return BindingList(version_id=version_id, items=get_registry(request).list_bindings(version_id))


@router.post(
    "/framework-versions/{version_id}/bindings",
    response_model=QuestionBinding,
    status_code=201,
)
def bind_question(request: Request, version_id: str, body: BindQuestionInput) -> QuestionBinding:
    return get_registry(request).bind_question(version_id, body)


@router.delete("/framework-versions/{version_id}/bindings/{key}", status_code=204)
def unbind_question(request: Request, version_id: str, key: str) -> Response:
    get_registry(request).unbind_question(version_id, key)
    return Response(status_code=204)
