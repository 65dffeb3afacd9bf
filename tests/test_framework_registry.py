"""Tests for FrameworkRegistry.

Tests cover:
1. Framework creation and lookup
2. Version publishing: numbering, validation, immutability of the config
3. Activation: exactly one default version per framework
4. Bindings: conflicts, inactive questions, override checks, locking
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from riskprofile.audit.sink import InMemoryAuditSink
from riskprofile.models.framework import BindingTransform, FrameworkVersion
from riskprofile.models.question import QuestionType
from riskprofile.persistence.repositories.frameworks import (
    BindingConflictError,
    FrameworkAlreadyExistsError,
    FrameworkNotFoundError,
    FrameworkVersionNotFoundError,
)
from riskprofile.persistence.repositories.questions import QuestionNotFoundError
from riskprofile.scoring.config import ScoringConfigError
from riskprofile.scoring.reference import REFERENCE_FRAMEWORK_CODE
from riskprofile.services.frameworks.registry import (
    ActiveFrameworkVersionNotFoundError,
    BindingNotFoundError,
    BindQuestionInput,
    CreateFrameworkInput,
    FrameworkRegistry,
    FrameworkVersionLockedError,
    InvalidBindingOverrideError,
)
from riskprofile.services.questions.catalog import (
    CreateQuestionInput,
    QuestionCatalog,
    QuestionInactiveError,
)
from riskprofile.services.submissions.service import SubmissionService


@pytest.fixture
def registry(audit_sink: InMemoryAuditSink) -> FrameworkRegistry:
    return FrameworkRegistry(audit_sink=audit_sink)


@pytest.fixture
def framework(registry: FrameworkRegistry) -> str:
    registry.create_framework(CreateFrameworkInput(code="demo", name="Demo framework"))
    return "demo"


@pytest.fixture
def catalog() -> QuestionCatalog:
    catalog = QuestionCatalog()
    catalog.create_question(
        CreateQuestionInput(
            key="horizon",
            label="Investment horizon",
            type=QuestionType.SINGLE_SELECT,
            options=["short", "medium", "long"],
        )
    )
    catalog.create_question(
        CreateQuestionInput(
            key="savings_rate",
            label="Savings rate (%)",
            type=QuestionType.NUMBER,
            min_value=0,
            max_value=100,
        )
    )
    return catalog


class TestFrameworks:
    def test_create_and_get(self, registry: FrameworkRegistry, framework: str) -> None:
        fw = registry.get_framework(framework)

        assert fw.name == "Demo framework"
        assert fw.engine == "three_pillar"
        assert fw.is_active
        assert fw.created_at is not None

    def test_duplicate_code_rejected(self, registry: FrameworkRegistry, framework: str) -> None:
        with pytest.raises(FrameworkAlreadyExistsError):
            registry.create_framework(CreateFrameworkInput(code=framework, name="Again"))

    def test_unknown_framework(self, registry: FrameworkRegistry) -> None:
        with pytest.raises(FrameworkNotFoundError):
            registry.get_framework("nope")

    def test_list_sorted_by_code(self, registry: FrameworkRegistry) -> None:
        registry.create_framework(CreateFrameworkInput(code="zeta", name="Z"))
        registry.create_framework(CreateFrameworkInput(code="alpha", name="A"))

        assert [fw.code for fw in registry.list_frameworks()] == ["alpha", "zeta"]


class TestPublish:
    def test_versions_are_numbered_per_framework(
        self, registry: FrameworkRegistry, framework: str, reference_document: dict[str, Any]
    ) -> None:
        registry.create_framework(CreateFrameworkInput(code="other", name="Other"))

        v1 = registry.publish_version(framework, reference_document)
        v2 = registry.publish_version(framework, reference_document)
        other = registry.publish_version("other", reference_document)

        assert (v1.version_number, v2.version_number, other.version_number) == (1, 2, 1)
        assert v1.version_id != v2.version_id
        assert v1.config_hash == v2.config_hash
        assert [v.version_number for v in registry.list_versions(framework)] == [1, 2]

    def test_published_version_is_not_default(
        self, registry: FrameworkRegistry, framework: str, reference_document: dict[str, Any]
    ) -> None:
        version = registry.publish_version(framework, reference_document)

        assert not version.is_default
        with pytest.raises(ActiveFrameworkVersionNotFoundError):
            registry.get_active_version(framework)

    def test_invalid_config_publishes_nothing(
        self, registry: FrameworkRegistry, framework: str, reference_document: dict[str, Any]
    ) -> None:
        reference_document["pillars"][0]["inputs"][0]["weight"] = 0.9

        with pytest.raises(ScoringConfigError) as exc_info:
            registry.publish_version(framework, reference_document)

        assert exc_info.value.errors
        assert registry.list_versions(framework) == []

    def test_unknown_framework(
        self, registry: FrameworkRegistry, reference_document: dict[str, Any]
    ) -> None:
        with pytest.raises(FrameworkNotFoundError):
            registry.publish_version("nope", reference_document)

    def test_caller_mutation_does_not_reach_the_version(
        self, registry: FrameworkRegistry, framework: str, reference_document: dict[str, Any]
    ) -> None:
        version = registry.publish_version(framework, reference_document)
        reference_document["bands"][0]["label"] = "Changed"

        stored = registry.get_version(version.version_id)
        assert stored.config.bands[0].label == "Conservative"
        assert stored.config_hash == version.config_hash

    def test_legacy_publish(self, registry: FrameworkRegistry, framework: str) -> None:
        legacy = {
            "engine": "weighted_sum",
            "questions": [
                {"qkey": "horizon", "map": {"short": 5, "long": 20}},
            ],
            "bands": [
                {"min": 0, "max": 10, "bucket": "Low"},
                {"min": 11, "max": 20, "bucket": "High"},
            ],
        }

        version = registry.publish_version(framework, legacy, legacy=True)

        assert [b.label for b in version.config.bands] == ["Low", "High"]

    def test_unknown_version(self, registry: FrameworkRegistry) -> None:
        with pytest.raises(FrameworkVersionNotFoundError):
            registry.get_version("00000000-0000-0000-0000-000000000000")


class TestActivation:
    def test_activate_on_publish(
        self, registry: FrameworkRegistry, framework: str, reference_document: dict[str, Any]
    ) -> None:
        version = registry.publish_version(framework, reference_document, activate=True)

        assert version.is_default
        assert registry.get_active_version(framework).version_id == version.version_id

    def test_single_default_after_switch(
        self, registry: FrameworkRegistry, framework: str, reference_document: dict[str, Any]
    ) -> None:
        v1 = registry.publish_version(framework, reference_document, activate=True)
        v2 = registry.publish_version(framework, reference_document, activate=True)

        defaults = [v for v in registry.list_versions(framework) if v.is_default]
        assert [v.version_id for v in defaults] == [v2.version_id]
        assert not registry.get_version(v1.version_id).is_default

        registry.activate_version(framework, v1.version_id)
        defaults = [v for v in registry.list_versions(framework) if v.is_default]
        assert [v.version_id for v in defaults] == [v1.version_id]

    def test_version_of_another_framework_rejected(
        self, registry: FrameworkRegistry, framework: str, reference_document: dict[str, Any]
    ) -> None:
        registry.create_framework(CreateFrameworkInput(code="other", name="Other"))
        own = registry.publish_version(framework, reference_document, activate=True)
        foreign = registry.publish_version("other", reference_document)

        with pytest.raises(FrameworkVersionNotFoundError):
            registry.activate_version(framework, foreign.version_id)

        assert registry.get_active_version(framework).version_id == own.version_id
        assert not registry.get_version(foreign.version_id).is_default

    def test_activation_events(
        self,
        registry: FrameworkRegistry,
        framework: str,
        reference_document: dict[str, Any],
        audit_sink: InMemoryAuditSink,
    ) -> None:
        v1 = registry.publish_version(framework, reference_document, activate=True)
        v2 = registry.publish_version(framework, reference_document, activate=True)

        activated = [e for e in audit_sink.events if e["event_type"] == "framework.version.activated"]
        assert [e["resource_id"] for e in activated] == [v1.version_id, v2.version_id]
        assert activated[0]["details"]["previous_version_id"] is None
        assert activated[1]["details"]["previous_version_id"] == v1.version_id

        published = [e for e in audit_sink.events if e["event_type"] == "framework.version.published"]
        assert published[0]["details"]["config_hash"] == v1.config_hash


class TestBindings:
    @pytest.fixture
    def version(
        self,
        registry: FrameworkRegistry,
        framework: str,
        catalog: QuestionCatalog,
        reference_document: dict[str, Any],
    ) -> FrameworkVersion:
        return registry.publish_version(framework, reference_document, activate=True)

    def test_bind_and_list_in_order(
        self, registry: FrameworkRegistry, version: FrameworkVersion
    ) -> None:
        registry.bind_question(
            version.version_id, BindQuestionInput(question_key="savings_rate", order_index=2)
        )
        registry.bind_question(
            version.version_id, BindQuestionInput(question_key="horizon", order_index=1)
        )

        bindings = registry.list_bindings(version.version_id)
        assert [b.question_key for b in bindings] == ["horizon", "savings_rate"]

    @pytest.mark.parametrize(
        ("second", "field"),
        [
            ({"question_key": "horizon", "order_index": 5}, "question_key"),
            ({"question_key": "savings_rate", "order_index": 0}, "order_index"),
            ({"question_key": "savings_rate", "order_index": 1, "alias": "term"}, "alias"),
        ],
    )
    def test_conflicts(
        self,
        registry: FrameworkRegistry,
        version: FrameworkVersion,
        second: dict[str, Any],
        field: str,
    ) -> None:
        registry.bind_question(
            version.version_id,
            BindQuestionInput(question_key="horizon", order_index=0, alias="term"),
        )

        with pytest.raises(BindingConflictError) as exc_info:
            registry.bind_question(version.version_id, BindQuestionInput(**second))

        assert exc_info.value.field == field
        assert len(registry.list_bindings(version.version_id)) == 1

    def test_alias_may_not_shadow_a_bound_key(
        self, registry: FrameworkRegistry, version: FrameworkVersion
    ) -> None:
        registry.bind_question(
            version.version_id, BindQuestionInput(question_key="horizon", order_index=0)
        )

        with pytest.raises(BindingConflictError):
            registry.bind_question(
                version.version_id,
                BindQuestionInput(question_key="savings_rate", order_index=1, alias="horizon"),
            )

    def test_unknown_question(self, registry: FrameworkRegistry, version: FrameworkVersion) -> None:
        with pytest.raises(QuestionNotFoundError):
            registry.bind_question(
                version.version_id, BindQuestionInput(question_key="ghost", order_index=0)
            )

    def test_inactive_question(
        self, registry: FrameworkRegistry, version: FrameworkVersion, catalog: QuestionCatalog
    ) -> None:
        catalog.deactivate_question("horizon")

        with pytest.raises(QuestionInactiveError):
            registry.bind_question(
                version.version_id, BindQuestionInput(question_key="horizon", order_index=0)
            )

    def test_unknown_version(self, registry: FrameworkRegistry, catalog: QuestionCatalog) -> None:
        with pytest.raises(FrameworkVersionNotFoundError):
            registry.bind_question(
                "missing", BindQuestionInput(question_key="horizon", order_index=0)
            )

    @pytest.mark.parametrize(
        "overrides",
        [
            {"question_key": "horizon", "label_override": "   "},
            {"question_key": "horizon", "options_override": []},
            {"question_key": "horizon", "options_override": ["short", "short"]},
            {"question_key": "savings_rate", "options_override": ["a", "b"]},
            {"question_key": "savings_rate", "transform": BindingTransform.CASEFOLD},
            {"question_key": "horizon", "alias": "Not A Key"},
        ],
    )
    def test_invalid_overrides(
        self, registry: FrameworkRegistry, version: FrameworkVersion, overrides: dict[str, Any]
    ) -> None:
        with pytest.raises(InvalidBindingOverrideError):
            registry.bind_question(
                version.version_id, BindQuestionInput(order_index=0, **overrides)
            )

    def test_valid_overrides_are_stored(
        self, registry: FrameworkRegistry, version: FrameworkVersion
    ) -> None:
        binding = registry.bind_question(
            version.version_id,
            BindQuestionInput(
                question_key="horizon",
                order_index=0,
                required=False,
                label_override="How long will you stay invested?",
                options_override=["short", "long"],
                alias="term",
                transform=BindingTransform.TRIM,
            ),
        )

        assert binding.options_override == ["short", "long"]
        assert binding.transform is BindingTransform.TRIM
        assert registry.list_bindings(version.version_id) == [binding]

    def test_unbind(
        self,
        registry: FrameworkRegistry,
        version: FrameworkVersion,
        audit_sink: InMemoryAuditSink,
    ) -> None:
        registry.bind_question(
            version.version_id, BindQuestionInput(question_key="horizon", order_index=0)
        )

        registry.unbind_question(version.version_id, "horizon")

        assert registry.list_bindings(version.version_id) == []
        assert audit_sink.events[-1]["event_type"] == "question_binding.deleted"
        with pytest.raises(BindingNotFoundError):
            registry.unbind_question(version.version_id, "horizon")


class TestLocking:
    def test_bindings_frozen_once_submitted(
        self,
        seed_reference: Callable[..., FrameworkVersion],
        aggressive_answers: dict[str, Any],
    ) -> None:
        version = seed_reference()
        registry = FrameworkRegistry()
        QuestionCatalog().create_question(
            CreateQuestionInput(key="extra", label="Extra", type=QuestionType.TEXT)
        )
        SubmissionService().submit(version.version_id, aggressive_answers)

        with pytest.raises(FrameworkVersionLockedError):
            registry.bind_question(
                version.version_id, BindQuestionInput(question_key="extra", order_index=99)
            )
        with pytest.raises(FrameworkVersionLockedError):
            registry.unbind_question(version.version_id, "age")

    def test_new_version_is_unlocked(
        self,
        seed_reference: Callable[..., FrameworkVersion],
        aggressive_answers: dict[str, Any],
    ) -> None:
        version = seed_reference()
        registry = FrameworkRegistry()
        SubmissionService().submit(version.version_id, aggressive_answers)

        fresh = registry.publish_version(
            REFERENCE_FRAMEWORK_CODE, version.config.to_document(), activate=True
        )
        registry.bind_question(
            fresh.version_id, BindQuestionInput(question_key="age", order_index=0)
        )

        assert [b.question_key for b in registry.list_bindings(fresh.version_id)] == ["age"]
