"""Framework, framework version and question binding repository.

Versions are append-only. The only mutable column is ``is_default``, and it
is flipped by set_default_version() as clear-then-set inside the caller's
transaction, so no reader ever sees two default versions of a framework.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, insert, select, update

from riskprofile.models.framework import Framework, FrameworkVersion, QuestionBinding
from riskprofile.persistence.db import as_utc
from riskprofile.persistence.schema import framework_versions, frameworks, question_bindings
from riskprofile.scoring.config import ScoringConfiguration

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = logging.getLogger(__name__)


class FrameworkNotFoundError(Exception):
    """Raised when a framework code is unknown."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Framework '{code}' not found")


class FrameworkAlreadyExistsError(Exception):
    """Raised when creating a framework whose code is already taken."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Framework '{code}' already exists")


class FrameworkVersionNotFoundError(Exception):
    """Raised when a framework version id is unknown."""

    def __init__(self, version_id: str) -> None:
        self.version_id = version_id
        super().__init__(f"Framework version {version_id} not found")


class BindingConflictError(Exception):
    """Raised when a binding reuses a key, alias or order index within a version."""

    def __init__(self, version_id: str, field: str, value: Any) -> None:
        self.version_id = version_id
        self.field = field
        self.value = value
        super().__init__(f"Version {version_id} already has a binding with {field}={value!r}")


class FrameworksRepository:
    """SQL repository for frameworks, versions and bindings."""

    def __init__(self, conn: Connection) -> None:
        """Initialize repository with a connection.

        Args:
            conn: SQLAlchemy connection (must be in a transaction).
        """
        self._conn = conn

    # Frameworks

    def create_framework(self, framework: Framework) -> Framework:
        """Insert a framework.

        Raises:
            FrameworkAlreadyExistsError: If the code is taken.
        """
        if self.get_framework(framework.code) is not None:
            raise FrameworkAlreadyExistsError(framework.code)
        stored = framework.model_copy(update={"created_at": datetime.now(UTC)})
        self._conn.execute(
            insert(frameworks).values(
                code=stored.code,
                name=stored.name,
                engine=stored.engine,
                description=stored.description,
                is_active=stored.is_active,
                created_at=stored.created_at,
            )
        )
        return stored

    def get_framework(self, code: str) -> Framework | None:
        row = self._conn.execute(select(frameworks).where(frameworks.c.code == code)).fetchone()
        if row is None:
            return None
        return Framework(
            code=row.code,
            name=row.name,
            engine=row.engine,
            description=row.description,
            is_active=bool(row.is_active),
            created_at=as_utc(row.created_at),
        )

    def list_frameworks(self) -> list[Framework]:
        rows = self._conn.execute(select(frameworks.c.code).order_by(frameworks.c.code)).fetchall()
        return [fw for row in rows if (fw := self.get_framework(row.code)) is not None]

    # Versions

    def create_version(
        self,
        *,
        version_id: str,
        framework_code: str,
        config: ScoringConfiguration,
    ) -> FrameworkVersion:
        """Append the next version of a framework.

        The version number is max(existing) + 1; concurrent publishers are
        serialized by the (framework_code, version_number) unique constraint.
        """
        current = self._conn.execute(
            select(func.max(framework_versions.c.version_number)).where(
                framework_versions.c.framework_code == framework_code
            )
        ).scalar()
        version = FrameworkVersion(
            version_id=version_id,
            framework_code=framework_code,
            version_number=(current or 0) + 1,
            config=config,
            config_hash=config.config_hash,
            is_default=False,
            created_at=datetime.now(UTC),
        )
        self._conn.execute(
            insert(framework_versions).values(
                version_id=version.version_id,
                framework_code=version.framework_code,
                version_number=version.version_number,
                config=config.to_document(),
                config_hash=version.config_hash,
                is_default=False,
                created_at=version.created_at,
            )
        )
        return version

    def get_version(self, version_id: str) -> FrameworkVersion | None:
        row = self._conn.execute(
            select(framework_versions).where(framework_versions.c.version_id == version_id)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_version(row)

    def list_versions(self, framework_code: str) -> list[FrameworkVersion]:
        rows = self._conn.execute(
            select(framework_versions)
            .where(framework_versions.c.framework_code == framework_code)
            .order_by(framework_versions.c.version_number)
        ).fetchall()
        return [self._row_to_version(row) for row in rows]

    def get_default_version(self, framework_code: str) -> FrameworkVersion | None:
        row = self._conn.execute(
            select(framework_versions).where(
                framework_versions.c.framework_code == framework_code,
                framework_versions.c.is_default.is_(True),
            )
        ).fetchone()
        if row is None:
            return None
        return self._row_to_version(row)

    def set_default_version(self, framework_code: str, version_id: str) -> None:
        """Clear the framework's default flag, then set it on version_id.

        Both statements run in the caller's transaction.
        """
        self._conn.execute(
            update(framework_versions)
            .where(
                framework_versions.c.framework_code == framework_code,
                framework_versions.c.is_default.is_(True),
            )
            .values(is_default=False)
        )
        result = self._conn.execute(
            update(framework_versions)
            .where(
                framework_versions.c.framework_code == framework_code,
                framework_versions.c.version_id == version_id,
            )
            .values(is_default=True)
        )
        if result.rowcount == 0:
            raise FrameworkVersionNotFoundError(version_id)

    def _row_to_version(self, row: Any) -> FrameworkVersion:
        return FrameworkVersion(
            version_id=row.version_id,
            framework_code=row.framework_code,
            version_number=row.version_number,
            config=ScoringConfiguration.model_validate(row.config),
            config_hash=row.config_hash,
            is_default=bool(row.is_default),
            created_at=as_utc(row.created_at),
        )

    # Bindings

    def add_binding(self, binding: QuestionBinding) -> QuestionBinding:
        """Insert a binding.

        Raises:
            BindingConflictError: If the key, alias or order index is taken
                within the version.
        """
        _check_binding_conflicts(binding, self.list_bindings(binding.version_id))
        stored = binding.model_copy(update={"created_at": datetime.now(UTC)})
        self._conn.execute(
            insert(question_bindings).values(
                version_id=stored.version_id,
                question_key=stored.question_key,
                required=stored.required,
                order_index=stored.order_index,
                label_override=stored.label_override,
                options_override=(
                    list(stored.options_override) if stored.options_override is not None else None
                ),
                alias=stored.alias,
                transform=stored.transform.value if stored.transform is not None else None,
                created_at=stored.created_at,
            )
        )
        return stored

    def delete_binding(self, version_id: str, question_key: str) -> bool:
        result = self._conn.execute(
            delete(question_bindings).where(
                question_bindings.c.version_id == version_id,
                question_bindings.c.question_key == question_key,
            )
        )
        return result.rowcount > 0

    def list_bindings(self, version_id: str) -> list[QuestionBinding]:
        """List the version's bindings ordered by order_index."""
        rows = self._conn.execute(
            select(question_bindings)
            .where(question_bindings.c.version_id == version_id)
            .order_by(question_bindings.c.order_index)
        ).fetchall()
        return [
            QuestionBinding(
                version_id=row.version_id,
                question_key=row.question_key,
                required=bool(row.required),
                order_index=row.order_index,
                label_override=row.label_override,
                options_override=row.options_override,
                alias=row.alias,
                transform=row.transform,
                created_at=as_utc(row.created_at),
            )
            for row in rows
        ]


def _check_binding_conflicts(binding: QuestionBinding, existing: list[QuestionBinding]) -> None:
    taken_keys: set[str] = set()
    for other in existing:
        taken_keys.add(other.question_key)
        if other.alias:
            taken_keys.add(other.alias)
        if other.question_key == binding.question_key:
            raise BindingConflictError(binding.version_id, "question_key", binding.question_key)
        if other.order_index == binding.order_index:
            raise BindingConflictError(binding.version_id, "order_index", binding.order_index)
    if binding.question_key in taken_keys:
        raise BindingConflictError(binding.version_id, "question_key", binding.question_key)
    if binding.alias and (binding.alias in taken_keys or binding.alias == binding.question_key):
        raise BindingConflictError(binding.version_id, "alias", binding.alias)


_frameworks_store: dict[str, Framework] = {}
_versions_store: dict[str, FrameworkVersion] = {}
_bindings_store: dict[str, dict[str, QuestionBinding]] = {}
_store_lock = threading.Lock()


class InMemoryFrameworksRepository:
    """In-memory fallback repository for when no database is configured.

    Used for development/testing without database dependency.
    """

    def create_framework(self, framework: Framework) -> Framework:
        with _store_lock:
            if framework.code in _frameworks_store:
                raise FrameworkAlreadyExistsError(framework.code)
            stored = framework.model_copy(update={"created_at": datetime.now(UTC)})
            _frameworks_store[stored.code] = stored
            return stored

    def get_framework(self, code: str) -> Framework | None:
        return _frameworks_store.get(code)

    def list_frameworks(self) -> list[Framework]:
        return sorted(_frameworks_store.values(), key=lambda f: f.code)

    def create_version(
        self,
        *,
        version_id: str,
        framework_code: str,
        config: ScoringConfiguration,
    ) -> FrameworkVersion:
        with _store_lock:
            numbers = [
                v.version_number
                for v in _versions_store.values()
                if v.framework_code == framework_code
            ]
            version = FrameworkVersion(
                version_id=version_id,
                framework_code=framework_code,
                version_number=max(numbers, default=0) + 1,
                config=config,
                config_hash=config.config_hash,
                is_default=False,
                created_at=datetime.now(UTC),
            )
            _versions_store[version_id] = version
            return version

    def get_version(self, version_id: str) -> FrameworkVersion | None:
        return _versions_store.get(version_id)

    def list_versions(self, framework_code: str) -> list[FrameworkVersion]:
        items = [v for v in _versions_store.values() if v.framework_code == framework_code]
        return sorted(items, key=lambda v: v.version_number)

    def get_default_version(self, framework_code: str) -> FrameworkVersion | None:
        for version in _versions_store.values():
            if version.framework_code == framework_code and version.is_default:
                return version
        return None

    def set_default_version(self, framework_code: str, version_id: str) -> None:
        with _store_lock:
            target = _versions_store.get(version_id)
            if target is None or target.framework_code != framework_code:
                raise FrameworkVersionNotFoundError(version_id)
            for vid, version in list(_versions_store.items()):
                if version.framework_code == framework_code and version.is_default:
                    _versions_store[vid] = version.model_copy(update={"is_default": False})
            _versions_store[version_id] = _versions_store[version_id].model_copy(
                update={"is_default": True}
            )

    def add_binding(self, binding: QuestionBinding) -> QuestionBinding:
        with _store_lock:
            bindings = _bindings_store.setdefault(binding.version_id, {})
            _check_binding_conflicts(binding, list(bindings.values()))
            stored = binding.model_copy(update={"created_at": datetime.now(UTC)})
            bindings[stored.question_key] = stored
            return stored

    def delete_binding(self, version_id: str, question_key: str) -> bool:
        with _store_lock:
            bindings = _bindings_store.get(version_id, {})
            return bindings.pop(question_key, None) is not None

    def list_bindings(self, version_id: str) -> list[QuestionBinding]:
        bindings = _bindings_store.get(version_id, {})
        return sorted(bindings.values(), key=lambda b: b.order_index)


def clear_frameworks_in_memory_store() -> None:
    """Clear the in-memory stores. For testing only."""
    with _store_lock:
        _frameworks_store.clear()
        _versions_store.clear()
        _bindings_store.clear()


def get_frameworks_repository(
    conn: Connection | None,
) -> FrameworksRepository | InMemoryFrameworksRepository:
    """Factory to get the appropriate frameworks repository.

    Returns the SQL repository when a connection is given, otherwise the
    in-memory fallback.
    """
    if conn is not None:
        return FrameworksRepository(conn)
    return InMemoryFrameworksRepository()
