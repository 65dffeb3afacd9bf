"""Table definitions for the relational store.

Identifiers, flags and timestamps are relational columns; framework
configurations and submission snapshots are JSON documents (JSONB on
PostgreSQL). Migration 0001 creates exactly these tables.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

metadata = MetaData()

Document = JSON().with_variant(JSONB(), "postgresql")

questions = Table(
    "questions",
    metadata,
    Column("key", String(128), primary_key=True),
    Column("label", Text, nullable=False),
    Column("type", String(32), nullable=False),
    Column("options", Document, nullable=False),
    Column("module", String(128), nullable=True),
    Column("min_value", Float, nullable=True),
    Column("max_value", Float, nullable=True),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

frameworks = Table(
    "frameworks",
    metadata,
    Column("code", String(128), primary_key=True),
    Column("name", Text, nullable=False),
    Column("engine", String(64), nullable=False),
    Column("description", Text, nullable=True),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

framework_versions = Table(
    "framework_versions",
    metadata,
    Column("version_id", String(36), primary_key=True),
    Column("framework_code", String(128), ForeignKey("frameworks.code"), nullable=False),
    Column("version_number", Integer, nullable=False),
    Column("config", Document, nullable=False),
    Column("config_hash", String(64), nullable=False),
    Column("is_default", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("framework_code", "version_number", name="uq_framework_versions_number"),
)

# At most one default version per framework, even under concurrent activation.
Index(
    "uq_framework_versions_default",
    framework_versions.c.framework_code,
    unique=True,
    postgresql_where=framework_versions.c.is_default,
    sqlite_where=framework_versions.c.is_default,
)

question_bindings = Table(
    "question_bindings",
    metadata,
    Column(
        "version_id",
        String(36),
        ForeignKey("framework_versions.version_id"),
        nullable=False,
    ),
    Column("question_key", String(128), ForeignKey("questions.key"), nullable=False),
    Column("required", Boolean, nullable=False, default=True),
    Column("order_index", Integer, nullable=False),
    Column("label_override", Text, nullable=True),
    Column("options_override", Document, nullable=True),
    Column("alias", String(128), nullable=True),
    Column("transform", String(32), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    PrimaryKeyConstraint("version_id", "question_key", name="pk_question_bindings"),
    UniqueConstraint("version_id", "order_index", name="uq_question_bindings_order"),
)

submissions = Table(
    "submissions",
    metadata,
    Column("submission_id", String(36), primary_key=True),
    Column(
        "framework_version_id",
        String(36),
        ForeignKey("framework_versions.version_id"),
        nullable=False,
        index=True,
    ),
    Column("framework_code", String(128), nullable=False),
    Column("version_number", Integer, nullable=False),
    Column("config_hash", String(64), nullable=False),
    Column("config", Document, nullable=False),
    Column("questions", Document, nullable=False),
    Column("raw_answers", Document, nullable=False),
    Column("answers", Document, nullable=False),
    Column("result", Document, nullable=False),
    Column("subject_ref", String(256), nullable=True, index=True),
    Column("submitted_at", DateTime(timezone=True), nullable=False),
    Column("engine_version", String(32), nullable=False),
)
