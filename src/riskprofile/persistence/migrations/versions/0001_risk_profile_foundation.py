"""Risk profile foundation: catalog, frameworks, versions, bindings, submissions.

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates:
- questions: global question catalog (soft-deactivated, never updated)
- frameworks / framework_versions: versioned scoring configurations, with a
  partial unique index allowing one default version per framework
- question_bindings: ordered questions per framework version
- submissions: append-only snapshots, guarded by an immutability trigger
"""

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Apply migration: create tables, indexes and the immutability trigger."""

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS questions (
            key VARCHAR(128) PRIMARY KEY,
            label TEXT NOT NULL,
            type VARCHAR(32) NOT NULL,
            options JSONB NOT NULL DEFAULT '[]'::jsonb,
            module VARCHAR(128),
            min_value DOUBLE PRECISION,
            max_value DOUBLE PRECISION,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ NOT NULL
        )
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS frameworks (
            code VARCHAR(128) PRIMARY KEY,
            name TEXT NOT NULL,
            engine VARCHAR(64) NOT NULL,
            description TEXT,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ NOT NULL
        )
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS framework_versions (
            version_id VARCHAR(36) PRIMARY KEY,
            framework_code VARCHAR(128) NOT NULL REFERENCES frameworks (code),
            version_number INTEGER NOT NULL,
            config JSONB NOT NULL,
            config_hash VARCHAR(64) NOT NULL,
            is_default BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_framework_versions_number UNIQUE (framework_code, version_number)
        )
        """
    )

    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_framework_versions_default
        ON framework_versions (framework_code)
        WHERE is_default
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS question_bindings (
            version_id VARCHAR(36) NOT NULL REFERENCES framework_versions (version_id),
            question_key VARCHAR(128) NOT NULL REFERENCES questions (key),
            required BOOLEAN NOT NULL DEFAULT TRUE,
            order_index INTEGER NOT NULL,
            label_override TEXT,
            options_override JSONB,
            alias VARCHAR(128),
            transform VARCHAR(32),
            created_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT pk_question_bindings PRIMARY KEY (version_id, question_key),
            CONSTRAINT uq_question_bindings_order UNIQUE (version_id, order_index)
        )
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS submissions (
            submission_id VARCHAR(36) PRIMARY KEY,
            framework_version_id VARCHAR(36) NOT NULL
                REFERENCES framework_versions (version_id),
            framework_code VARCHAR(128) NOT NULL,
            version_number INTEGER NOT NULL,
            config_hash VARCHAR(64) NOT NULL,
            config JSONB NOT NULL,
            questions JSONB NOT NULL,
            raw_answers JSONB NOT NULL,
            answers JSONB NOT NULL,
            result JSONB NOT NULL,
            subject_ref VARCHAR(256),
            submitted_at TIMESTAMPTZ NOT NULL,
            engine_version VARCHAR(32) NOT NULL
        )
        """
    )

    op.execute(
        """
        CREATE INDEX IF NOT EXISTS ix_submissions_framework_version_id
        ON submissions (framework_version_id)
        """
    )

    op.execute(
        """
        CREATE INDEX IF NOT EXISTS ix_submissions_subject_ref
        ON submissions (subject_ref)
        """
    )

    op.execute(
        """
        CREATE OR REPLACE FUNCTION riskprofile_reject_submission_mutation()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION 'Submissions are immutable: UPDATE and DELETE are not allowed';
        END;
        $$ LANGUAGE plpgsql
        """
    )

    op.execute(
        """
        CREATE TRIGGER submissions_immutability
        BEFORE UPDATE OR DELETE ON submissions
        FOR EACH ROW EXECUTE FUNCTION riskprofile_reject_submission_mutation()
        """
    )


def downgrade() -> None:
    """Revert migration: drop trigger, indexes and tables."""

    op.execute("DROP TRIGGER IF EXISTS submissions_immutability ON submissions")
    op.execute("DROP FUNCTION IF EXISTS riskprofile_reject_submission_mutation()")

    op.execute("DROP TABLE IF EXISTS submissions")
    op.execute("DROP TABLE IF EXISTS question_bindings")
    op.execute("DROP INDEX IF EXISTS uq_framework_versions_default")
    op.execute("DROP TABLE IF EXISTS framework_versions")
    op.execute("DROP TABLE IF EXISTS frameworks")
    op.execute("DROP TABLE IF EXISTS questions")
