"""Pytest configuration and fixtures for risk profile tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from copy import deepcopy
from typing import Any

import pytest
from sqlalchemy import Connection, create_engine
from sqlalchemy.pool import StaticPool

from riskprofile.audit.sink import AUDIT_LOG_PATH_ENV, InMemoryAuditSink
from riskprofile.models.framework import FrameworkVersion
from riskprofile.persistence.db import (
    RISKPROFILE_DATABASE_ADMIN_URL_ENV,
    RISKPROFILE_DATABASE_URL_ENV,
    reset_engines,
)
from riskprofile.persistence.repositories import clear_all_in_memory_stores
from riskprofile.persistence.schema import metadata
from riskprofile.scoring.reference import (
    REFERENCE_CONFIG_DOCUMENT,
    REFERENCE_FRAMEWORK_CODE,
    REFERENCE_FRAMEWORK_NAME,
    REFERENCE_QUESTIONS,
)
from riskprofile.services.frameworks.registry import (
    BindQuestionInput,
    CreateFrameworkInput,
    FrameworkRegistry,
)
from riskprofile.services.questions.catalog import CreateQuestionInput, QuestionCatalog

SCENARIO_AGGRESSIVE: dict[str, Any] = {
    "age": "25-35",
    "emi_ratio": 15,
    "liquidity_withdrawal_2y": 5,
    "income_security": "Very secure",
    "market_knowledge": "High",
    "drawdown_reaction": "Buy more",
    "gain_loss_tradeoff": "Loss25Gain50",
    "goal_required_return": 12,
}

SCENARIO_NEED_EXCEEDS_CAPACITY: dict[str, Any] = {
    "age": "51+",
    "emi_ratio": 40,
    "liquidity_withdrawal_2y": 50,
    "income_security": "Not secure",
    "market_knowledge": "Low",
    "drawdown_reaction": "Sell",
    "gain_loss_tradeoff": "NoLossEvenIfLowGain",
    "goal_required_return": 15,
}


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Run every test against empty in-memory stores and no database.

    Tests that need a database or a JSONL audit log set the environment
    themselves.
    """
    monkeypatch.delenv(RISKPROFILE_DATABASE_URL_ENV, raising=False)
    monkeypatch.delenv(RISKPROFILE_DATABASE_ADMIN_URL_ENV, raising=False)
    monkeypatch.delenv(AUDIT_LOG_PATH_ENV, raising=False)
    clear_all_in_memory_stores()
    yield
    clear_all_in_memory_stores()
    reset_engines()


@pytest.fixture
def reference_document() -> dict[str, Any]:
    """A mutable copy of the reference configuration document."""
    return deepcopy(REFERENCE_CONFIG_DOCUMENT)


@pytest.fixture
def aggressive_answers() -> dict[str, Any]:
    """Reference answers scoring capacity 83.25, tolerance 80.5, need 85."""
    return dict(SCENARIO_AGGRESSIVE)


@pytest.fixture
def need_exceeds_capacity_answers() -> dict[str, Any]:
    """Reference answers whose need outruns capacity by more than 10 points."""
    return dict(SCENARIO_NEED_EXCEEDS_CAPACITY)


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def sqlite_conn() -> Generator[Connection, None, None]:
    """In-memory SQLite connection with the schema created, inside a transaction."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    with engine.connect() as conn:
        trans = conn.begin()
        yield conn
        trans.rollback()
    engine.dispose()


def _seed_reference_framework(
    db_conn: Connection | None = None,
    audit_sink: InMemoryAuditSink | None = None,
) -> FrameworkVersion:
    """Create the reference catalog, framework and active version with all bindings."""
    catalog = QuestionCatalog(db_conn=db_conn, audit_sink=audit_sink)
    registry = FrameworkRegistry(db_conn=db_conn, audit_sink=audit_sink)

    for question in REFERENCE_QUESTIONS:
        catalog.create_question(
            CreateQuestionInput(
                key=question.key,
                label=question.label,
                type=question.type,
                options=list(question.options),
                module=question.module,
                min_value=question.min_value,
                max_value=question.max_value,
            )
        )

    registry.create_framework(
        CreateFrameworkInput(code=REFERENCE_FRAMEWORK_CODE, name=REFERENCE_FRAMEWORK_NAME)
    )
    version = registry.publish_version(
        REFERENCE_FRAMEWORK_CODE, deepcopy(REFERENCE_CONFIG_DOCUMENT), activate=True
    )
    for order, question in enumerate(REFERENCE_QUESTIONS):
        registry.bind_question(
            version.version_id,
            BindQuestionInput(question_key=question.key, order_index=order),
        )
    return version


@pytest.fixture
def seed_reference() -> Callable[..., FrameworkVersion]:
    """Factory fixture seeding the reference framework into a store."""
    return _seed_reference_framework
