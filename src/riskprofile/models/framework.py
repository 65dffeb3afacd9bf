"""Framework registry models.

- Framework: a named scoring methodology
- FrameworkVersion: one immutable scoring configuration of a framework
- QuestionBinding: a catalog question attached to a version
- ResolvedQuestion: catalog question merged with its binding overrides
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from riskprofile.models.question import QuestionType
from riskprofile.scoring.config import ScoringConfiguration


class BindingTransform(StrEnum):
    """Answer preprocessing hint carried by a binding."""

    TRIM = "trim"
    CASEFOLD = "casefold"


class Framework(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., min_length=1, description="Framework code, e.g. cfa_three_pillar_v1")
    name: str = Field(..., min_length=1, description="Human-readable name")
    engine: str = Field(default="three_pillar", description="Scoring engine type")
    description: str | None = Field(default=None)
    is_active: bool = Field(default=True)
    created_at: datetime | None = Field(default=None)


class FrameworkVersion(BaseModel):
    """A published, immutable scoring configuration.

    At most one version per framework has is_default=True.
    """

    model_config = ConfigDict(frozen=True)

    version_id: str = Field(..., description="UUID of this version")
    framework_code: str = Field(..., description="Owning framework")
    version_number: int = Field(..., ge=1, description="1, 2, ... per framework")
    config: ScoringConfiguration = Field(..., description="Validated scoring configuration")
    config_hash: str = Field(..., description="SHA256 of the canonical configuration")
    is_default: bool = Field(default=False, description="Active version of the framework")
    created_at: datetime | None = Field(default=None)


class QuestionBinding(BaseModel):
    """Association of a catalog question to a framework version."""

    model_config = ConfigDict(frozen=True)

    version_id: str = Field(..., description="Framework version the binding belongs to")
    question_key: str = Field(..., description="Catalog question key")
    required: bool = Field(default=True)
    order_index: int = Field(..., ge=0, description="Display order, unique within the version")
    label_override: str | None = Field(default=None)
    options_override: list[str] | None = Field(default=None)
    alias: str | None = Field(default=None, description="Alternate key accepted on submit")
    transform: BindingTransform | None = Field(default=None)
    created_at: datetime | None = Field(default=None)


class ResolvedQuestion(BaseModel):
    """A question as presented and validated for one framework version."""

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    type: QuestionType
    options: list[str] = Field(default_factory=list)
    required: bool
    order: int
    module: str | None = None
    min_value: float | None = None
    max_value: float | None = None
    alias: str | None = None
    transform: BindingTransform | None = None
