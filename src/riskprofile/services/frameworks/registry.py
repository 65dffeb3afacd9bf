"""FrameworkRegistry - frameworks, immutable versions and question bindings.

Enforces at write time:
- Scoring configurations pass publish-time validation before a version exists
- Version numbers are 1, 2, ... per framework; versions are never edited
- At most one default version per framework (clear-then-set in one transaction)
- Bindings reference existing, active questions with unique keys, aliases
  and order indices, and are frozen once a submission uses the version

Uses SQL repositories when db_conn exists, in-memory fallback otherwise.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from riskprofile.audit.events import AuditEventType, emit_event
from riskprofile.audit.sink import AuditSink, InMemoryAuditSink
from riskprofile.models.framework import (
    BindingTransform,
    Framework,
    FrameworkVersion,
    QuestionBinding,
)
from riskprofile.models.question import QUESTION_KEY_PATTERN, QuestionType, check_option_set
from riskprofile.persistence.repositories.frameworks import (
    FrameworkNotFoundError,
    FrameworkVersionNotFoundError,
    get_frameworks_repository,
)
from riskprofile.persistence.repositories.questions import (
    QuestionNotFoundError,
    get_questions_repository,
)
from riskprofile.persistence.repositories.submissions import get_submissions_repository
from riskprofile.scoring.config import parse_scoring_config
from riskprofile.scoring.legacy import convert_legacy_config
from riskprofile.services.questions.catalog import QuestionInactiveError

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = logging.getLogger(__name__)


class ActiveFrameworkVersionNotFoundError(Exception):
    """Raised when a framework has no default version."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Framework '{code}' has no active version")


class FrameworkVersionLockedError(Exception):
    """Raised when changing the bindings of a version that submissions reference."""

    def __init__(self, version_id: str) -> None:
        self.version_id = version_id
        super().__init__(
            f"Framework version {version_id} is referenced by submissions; "
            "publish a new version instead"
        )


class InvalidBindingOverrideError(Exception):
    """Raised when a binding override does not fit the bound question."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        self.message = message
        super().__init__(f"Invalid binding for '{key}': {message}")


class BindingNotFoundError(Exception):
    """Raised when unbinding a key the version does not bind."""

    def __init__(self, version_id: str, key: str) -> None:
        self.version_id = version_id
        self.key = key
        super().__init__(f"Version {version_id} does not bind '{key}'")


class CreateFrameworkInput(BaseModel):
    """Input model for creating a framework."""

    code: str = Field(..., min_length=1, max_length=128, description="Framework code")
    name: str = Field(..., min_length=1, description="Human-readable name")
    engine: str = Field(default="three_pillar", description="Scoring engine type")
    description: str | None = Field(default=None)


class BindQuestionInput(BaseModel):
    """Input model for binding a catalog question to a framework version."""

    question_key: str = Field(..., description="Catalog question key")
    required: bool = Field(default=True)
    order_index: int = Field(..., ge=0, description="Display order, unique within the version")
    label_override: str | None = Field(default=None)
    options_override: list[str] | None = Field(default=None)
    alias: str | None = Field(default=None)
    transform: BindingTransform | None = Field(default=None)


class FrameworkRegistry:
    """Service layer for frameworks, versions and bindings.

    Usage:
        registry = FrameworkRegistry(db_conn=conn)
        version = registry.publish_version("cfa_three_pillar_v1", document, activate=True)
    """

    def __init__(
        self,
        db_conn: Connection | None = None,
        audit_sink: AuditSink | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            db_conn: SQLAlchemy connection. If None, uses in-memory storage.
            audit_sink: Optional audit sink for event emission.
        """
        self._frameworks = get_frameworks_repository(db_conn)
        self._questions = get_questions_repository(db_conn)
        self._submissions = get_submissions_repository(db_conn)
        self._audit_sink = audit_sink or InMemoryAuditSink()

    # Frameworks

    def create_framework(self, data: CreateFrameworkInput) -> Framework:
        """Create a framework.

        Raises:
            FrameworkAlreadyExistsError: If the code is taken.
        """
        framework = self._frameworks.create_framework(Framework(**data.model_dump()))
        emit_event(
            self._audit_sink,
            AuditEventType.FRAMEWORK_CREATED,
            resource_type="framework",
            resource_id=framework.code,
            details={"engine": framework.engine},
        )
        return framework

    def get_framework(self, code: str) -> Framework:
        """Raises FrameworkNotFoundError if the code is unknown."""
        framework = self._frameworks.get_framework(code)
        if framework is None:
            raise FrameworkNotFoundError(code)
        return framework

    def list_frameworks(self) -> list[Framework]:
        return self._frameworks.list_frameworks()

    # Versions

    def publish_version(
        self,
        code: str,
        document: dict[str, Any],
        *,
        activate: bool = False,
        legacy: bool = False,
    ) -> FrameworkVersion:
        """Validate a scoring configuration and publish it as the next version.

        Args:
            code: Framework code.
            document: Scoring configuration document.
            activate: Make the new version the framework default.
            legacy: Convert the document from a legacy shape first.

        Returns:
            The published version.

        Raises:
            FrameworkNotFoundError: If the framework is unknown.
            ScoringConfigError: If the configuration is not publishable.
        """
        self.get_framework(code)
        if legacy:
            document = convert_legacy_config(document)
        config = parse_scoring_config(document)

        version = self._frameworks.create_version(
            version_id=str(uuid.uuid4()),
            framework_code=code,
            config=config,
        )
        logger.info(
            "Published framework %s version %d (%s, config %s)",
            code,
            version.version_number,
            version.version_id,
            version.config_hash[:12],
        )
        emit_event(
            self._audit_sink,
            AuditEventType.FRAMEWORK_VERSION_PUBLISHED,
            resource_type="framework_version",
            resource_id=version.version_id,
            details={
                "framework_code": code,
                "version_number": version.version_number,
                "config_hash": version.config_hash,
            },
        )

        if activate:
            return self.activate_version(code, version.version_id)
        return version

    def get_version(self, version_id: str) -> FrameworkVersion:
        """Raises FrameworkVersionNotFoundError if the version id is unknown."""
        version = self._frameworks.get_version(version_id)
        if version is None:
            raise FrameworkVersionNotFoundError(version_id)
        return version

    def list_versions(self, code: str) -> list[FrameworkVersion]:
        self.get_framework(code)
        return self._frameworks.list_versions(code)

    def activate_version(self, code: str, version_id: str) -> FrameworkVersion:
        """Make version_id the framework's only default version.

        Raises:
            FrameworkNotFoundError: If the framework is unknown.
            FrameworkVersionNotFoundError: If the version is unknown or
                belongs to another framework.
        """
        self.get_framework(code)
        version = self._frameworks.get_version(version_id)
        if version is None or version.framework_code != code:
            raise FrameworkVersionNotFoundError(version_id)

        previous = self._frameworks.get_default_version(code)
        self._frameworks.set_default_version(code, version_id)
        logger.info(
            "Framework %s default version switched %s -> %s",
            code,
            previous.version_id if previous else None,
            version_id,
        )
        emit_event(
            self._audit_sink,
            AuditEventType.FRAMEWORK_VERSION_ACTIVATED,
            resource_type="framework_version",
            resource_id=version_id,
            details={
                "framework_code": code,
                "previous_version_id": previous.version_id if previous else None,
            },
        )
        return self.get_version(version_id)

    def get_active_version(self, code: str) -> FrameworkVersion:
        """Return the framework's default version.

        Raises:
            FrameworkNotFoundError: If the framework is unknown.
            ActiveFrameworkVersionNotFoundError: If no version is active.
        """
        self.get_framework(code)
        version = self._frameworks.get_default_version(code)
        if version is None:
            raise ActiveFrameworkVersionNotFoundError(code)
        return version

    # Bindings

    def _ensure_unlocked(self, version_id: str) -> None:
        if self._submissions.exists_for_version(version_id):
            raise FrameworkVersionLockedError(version_id)

    def bind_question(self, version_id: str, data: BindQuestionInput) -> QuestionBinding:
        """Attach a catalog question to a framework version.

        Raises:
            FrameworkVersionNotFoundError: If the version is unknown.
            FrameworkVersionLockedError: If submissions reference the version.
            QuestionNotFoundError: If the question is not in the catalog.
            QuestionInactiveError: If the question is deactivated.
            InvalidBindingOverrideError: If an override does not fit the question.
            BindingConflictError: If the key, alias or order index is taken.
        """
        self.get_version(version_id)
        self._ensure_unlocked(version_id)

        key = data.question_key
        question = self._questions.get(key)
        if question is None:
            raise QuestionNotFoundError(key)
        if not question.is_active:
            raise QuestionInactiveError(key)

        if data.label_override is not None and not data.label_override.strip():
            raise InvalidBindingOverrideError(key, "label override must not be blank")
        if data.options_override is not None:
            if not question.type.has_options:
                raise InvalidBindingOverrideError(
                    key, f"options cannot be overridden on a {question.type.value} question"
                )
            if not data.options_override:
                raise InvalidBindingOverrideError(key, "options override must not be empty")
            try:
                check_option_set(data.options_override)
            except ValueError as e:
                raise InvalidBindingOverrideError(key, str(e)) from e
        if data.alias is not None and not QUESTION_KEY_PATTERN.match(data.alias):
            raise InvalidBindingOverrideError(key, f"alias '{data.alias}' is not a valid key")
        if data.transform is BindingTransform.CASEFOLD and question.type is QuestionType.NUMBER:
            raise InvalidBindingOverrideError(key, "casefold does not apply to number questions")

        binding = self._frameworks.add_binding(
            QuestionBinding(version_id=version_id, **data.model_dump())
        )
        emit_event(
            self._audit_sink,
            AuditEventType.QUESTION_BINDING_CREATED,
            resource_type="question_binding",
            resource_id=f"{version_id}:{key}",
            details={"order_index": binding.order_index, "required": binding.required},
        )
        return binding

    def list_bindings(self, version_id: str) -> list[QuestionBinding]:
        self.get_version(version_id)
        return self._frameworks.list_bindings(version_id)

    def unbind_question(self, version_id: str, key: str) -> None:
        """Remove a binding from a version that no submission references yet.

        Raises:
            FrameworkVersionNotFoundError: If the version is unknown.
            FrameworkVersionLockedError: If submissions reference the version.
            BindingNotFoundError: If the version does not bind the key.
        """
        self.get_version(version_id)
        self._ensure_unlocked(version_id)
        if not self._frameworks.delete_binding(version_id, key):
            raise BindingNotFoundError(version_id, key)
        emit_event(
            self._audit_sink,
            AuditEventType.QUESTION_BINDING_DELETED,
            resource_type="question_binding",
            resource_id=f"{version_id}:{key}",
        )
