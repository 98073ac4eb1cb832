"""PostgreSQL feature store (SQLAlchemy async + asyncpg).

Production implementation of FeatureRepositoryProtocol and
VoteLedgerProtocol. Every vote toggle and every status transition runs in
its own transaction holding the feature row lock, so:

- a vote is never written to a feature that has left PENDING
- the count a vote returns includes every committed vote before it
- the claim freezes exactly the votes that exist when it commits

The status change itself is the conditional
``UPDATE ... WHERE id = :id AND status = :expected RETURNING ...``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import bindparam, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from votegate.application.ports.feature_repository import FeatureRepositoryProtocol
from votegate.application.ports.vote_ledger import (
    VoteLedgerProtocol,
    VoteToggleResult,
)
from votegate.domain.errors.concurrent_modification import (
    ConcurrentTransitionError,
    VoteThresholdNotMetError,
)
from votegate.domain.errors.feature import (
    FeatureNotFoundError,
    InvalidFeatureStateError,
    InvalidStatusTransitionError,
)
from votegate.domain.models.feature import Feature, FeatureStatus, VoteAction

logger = get_logger(__name__)

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS features (
        id UUID PRIMARY KEY,
        title VARCHAR(200) NOT NULL,
        description TEXT NOT NULL,
        creator_id TEXT NOT NULL,
        status VARCHAR(16) NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'implementing', 'implemented')),
        parent_id UUID NULL REFERENCES features(id),
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        implementation_started_at TIMESTAMPTZ NULL,
        implemented_at TIMESTAMPTZ NULL,
        vote_snapshot INTEGER NULL,
        external_ref TEXT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_features_status ON features (status)",
    "CREATE INDEX IF NOT EXISTS ix_features_parent_id ON features (parent_id)",
    """
    CREATE TABLE IF NOT EXISTS votes (
        id BIGSERIAL PRIMARY KEY,
        user_id TEXT NOT NULL,
        feature_id UUID NOT NULL REFERENCES features(id),
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        CONSTRAINT uq_votes_user_feature UNIQUE (user_id, feature_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_votes_feature_id ON votes (feature_id)",
)

_FEATURE_COLUMNS = (
    "id, title, description, creator_id, status, parent_id, created_at, "
    "implementation_started_at, implemented_at, vote_snapshot, external_ref"
)


def _row_to_feature(row: Any) -> Feature:
    data = row._mapping
    return Feature(
        id=data["id"],
        title=data["title"],
        description=data["description"],
        creator_id=data["creator_id"],
        status=FeatureStatus(data["status"]),
        parent_id=data["parent_id"],
        created_at=data["created_at"],
        implementation_started_at=data["implementation_started_at"],
        implemented_at=data["implemented_at"],
        vote_snapshot=data["vote_snapshot"],
        external_ref=data["external_ref"],
    )


class PostgresFeatureStore(FeatureRepositoryProtocol, VoteLedgerProtocol):
    """PostgreSQL-backed feature repository and vote ledger.

    Attributes:
        _session_factory: SQLAlchemy async session factory for DB access.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the store.

        Args:
            session_factory: SQLAlchemy async session factory.
        """
        self._session_factory = session_factory

    async def create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        async with self._session_factory() as session, session.begin():
            for statement in SCHEMA_STATEMENTS:
                await session.execute(text(statement))
        logger.info("feature_store_schema_ready")

    # Feature repository

    async def save(self, feature: Feature) -> None:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    await session.execute(
                        text(f"""
                            INSERT INTO features ({_FEATURE_COLUMNS})
                            VALUES (
                                :id, :title, :description, :creator_id, :status,
                                :parent_id, :created_at, :implementation_started_at,
                                :implemented_at, :vote_snapshot, :external_ref
                            )
                        """),
                        {
                            "id": feature.id,
                            "title": feature.title,
                            "description": feature.description,
                            "creator_id": feature.creator_id,
                            "status": feature.status.value,
                            "parent_id": feature.parent_id,
                            "created_at": feature.created_at,
                            "implementation_started_at": feature.implementation_started_at,
                            "implemented_at": feature.implemented_at,
                            "vote_snapshot": feature.vote_snapshot,
                            "external_ref": feature.external_ref,
                        },
                    )
            except IntegrityError as e:
                raise ValueError(f"Feature already exists: {feature.id}") from e

    async def get(self, feature_id: UUID) -> Feature | None:
        async with self._session_factory() as session:
            result = await session.execute(
                text(f"SELECT {_FEATURE_COLUMNS} FROM features WHERE id = :id"),
                {"id": feature_id},
            )
            row = result.fetchone()
            return _row_to_feature(row) if row else None

    async def list_features(
        self,
        statuses: frozenset[FeatureStatus] | None = None,
    ) -> list[Feature]:
        async with self._session_factory() as session:
            if statuses is None:
                result = await session.execute(
                    text(
                        f"SELECT {_FEATURE_COLUMNS} FROM features "
                        "ORDER BY created_at DESC"
                    )
                )
            else:
                if not statuses:
                    return []
                result = await session.execute(
                    text(
                        f"SELECT {_FEATURE_COLUMNS} FROM features "
                        "WHERE status IN :statuses ORDER BY created_at DESC"
                    ).bindparams(bindparam("statuses", expanding=True)),
                    {"statuses": [s.value for s in statuses]},
                )
            return [_row_to_feature(row) for row in result.fetchall()]

    async def count_open_variations(self, parent_ids: list[UUID]) -> dict[UUID, int]:
        if not parent_ids:
            return {}
        async with self._session_factory() as session:
            result = await session.execute(
                text("""
                    SELECT parent_id, COUNT(*)
                    FROM features
                    WHERE parent_id IN :parent_ids AND status <> 'implemented'
                    GROUP BY parent_id
                """).bindparams(bindparam("parent_ids", expanding=True)),
                {"parent_ids": list(parent_ids)},
            )
            return {row[0]: int(row[1]) for row in result.fetchall()}

    async def transition_status_cas(
        self,
        feature_id: UUID,
        expected_status: FeatureStatus,
        new_status: FeatureStatus,
        external_ref: str | None = None,
        privileged: bool = False,
        min_votes: int | None = None,
    ) -> Feature:
        """Atomic status change using UPDATE ... WHERE status = :expected."""
        if new_status not in expected_status.valid_transitions(privileged):
            raise InvalidStatusTransitionError(
                feature_id=feature_id,
                current_status=expected_status,
                target_status=new_status,
            )

        log = logger.bind(
            feature_id=str(feature_id),
            expected_status=expected_status.value,
            new_status=new_status.value,
        )
        now = datetime.now(timezone.utc)

        async with self._session_factory() as session, session.begin():
            # Row lock: waits for in-flight vote transactions on this feature
            locked = await session.execute(
                text("SELECT status FROM features WHERE id = :id FOR UPDATE"),
                {"id": feature_id},
            )
            locked_row = locked.fetchone()
            if locked_row is None:
                raise FeatureNotFoundError(feature_id)
            status_matches = locked_row[0] == expected_status.value

            leaving_pending = expected_status is FeatureStatus.PENDING
            snapshot: int | None = None
            if leaving_pending:
                count_result = await session.execute(
                    text("SELECT COUNT(*) FROM votes WHERE feature_id = :id"),
                    {"id": feature_id},
                )
                snapshot = int(count_result.scalar() or 0)
                if status_matches and min_votes is not None and snapshot < min_votes:
                    log.info(
                        "feature_claim_below_threshold",
                        vote_count=snapshot,
                        min_votes=min_votes,
                    )
                    raise VoteThresholdNotMetError(
                        feature_id=feature_id,
                        vote_count=snapshot,
                        min_votes=min_votes,
                    )

            params: dict[str, Any] = {
                "id": feature_id,
                "new_status": new_status.value,
                "expected_status": expected_status.value,
            }
            if new_status is FeatureStatus.PENDING:
                assignments = ["implementation_started_at = NULL", "vote_snapshot = NULL"]
            elif new_status is FeatureStatus.IMPLEMENTING:
                assignments = ["implementation_started_at = :now"]
                params["now"] = now
            else:
                assignments = ["implemented_at = :now"]
                params["now"] = now
            if leaving_pending:
                assignments.append("vote_snapshot = :snapshot")
                params["snapshot"] = snapshot
            if external_ref is not None:
                assignments.append("external_ref = :external_ref")
                params["external_ref"] = external_ref

            conditions = ["id = :id", "status = :expected_status"]
            if min_votes is not None:
                conditions.append(
                    "(SELECT COUNT(*) FROM votes WHERE feature_id = :id) >= :min_votes"
                )
                params["min_votes"] = min_votes

            set_clause = ", ".join(assignments)
            where_clause = " AND ".join(conditions)
            result = await session.execute(
                text(f"""
                    UPDATE features
                    SET status = :new_status, {set_clause}
                    WHERE {where_clause}
                    RETURNING {_FEATURE_COLUMNS}
                """),
                params,
            )
            row = result.fetchone()
            if row is None:
                log.info("feature_status_cas_missed")
                raise ConcurrentTransitionError(
                    feature_id=feature_id,
                    expected_status=expected_status,
                    operation=f"transition_to_{new_status.value}",
                )

            if leaving_pending:
                await session.execute(
                    text("DELETE FROM votes WHERE feature_id = :id"),
                    {"id": feature_id},
                )

            log.debug("feature_status_cas_applied", vote_snapshot=snapshot)
            return _row_to_feature(row)

    # Vote ledger

    async def toggle_vote(self, user_id: str, feature_id: UUID) -> VoteToggleResult:
        async with self._session_factory() as session, session.begin():
            # Serializes votes on this feature against each other and the claim
            locked = await session.execute(
                text("SELECT status FROM features WHERE id = :id FOR UPDATE"),
                {"id": feature_id},
            )
            row = locked.fetchone()
            if row is None:
                raise FeatureNotFoundError(feature_id)
            status = FeatureStatus(row[0])
            if not status.accepts_votes():
                raise InvalidFeatureStateError(
                    feature_id=feature_id,
                    current_status=status,
                    operation="vote",
                )

            deleted = await session.execute(
                text("""
                    DELETE FROM votes
                    WHERE user_id = :user_id AND feature_id = :feature_id
                    RETURNING id
                """),
                {"user_id": user_id, "feature_id": feature_id},
            )
            if deleted.fetchone() is not None:
                action = VoteAction.REMOVED
            else:
                await session.execute(
                    text("""
                        INSERT INTO votes (user_id, feature_id, created_at)
                        VALUES (:user_id, :feature_id, :created_at)
                        ON CONFLICT (user_id, feature_id) DO NOTHING
                    """),
                    {
                        "user_id": user_id,
                        "feature_id": feature_id,
                        "created_at": datetime.now(timezone.utc),
                    },
                )
                action = VoteAction.ADDED

            count_result = await session.execute(
                text("SELECT COUNT(*) FROM votes WHERE feature_id = :feature_id"),
                {"feature_id": feature_id},
            )
            count = int(count_result.scalar() or 0)

        return VoteToggleResult(
            feature_id=feature_id,
            user_id=user_id,
            action=action,
            vote_count=count,
        )

    async def count_votes(self, feature_id: UUID) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                text("SELECT COUNT(*) FROM votes WHERE feature_id = :feature_id"),
                {"feature_id": feature_id},
            )
            return int(result.scalar() or 0)

    async def vote_counts(self, feature_ids: list[UUID]) -> dict[UUID, int]:
        if not feature_ids:
            return {}
        async with self._session_factory() as session:
            result = await session.execute(
                text("""
                    SELECT feature_id, COUNT(*)
                    FROM votes
                    WHERE feature_id IN :feature_ids
                    GROUP BY feature_id
                """).bindparams(bindparam("feature_ids", expanding=True)),
                {"feature_ids": list(feature_ids)},
            )
            counts = {row[0]: int(row[1]) for row in result.fetchall()}
        return {fid: counts.get(fid, 0) for fid in feature_ids}

    async def has_voted(self, user_id: str, feature_id: UUID) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                text("""
                    SELECT 1 FROM votes
                    WHERE user_id = :user_id AND feature_id = :feature_id
                """),
                {"user_id": user_id, "feature_id": feature_id},
            )
            return result.fetchone() is not None

    async def voted_feature_ids(self, user_id: str) -> frozenset[UUID]:
        async with self._session_factory() as session:
            result = await session.execute(
                text("SELECT feature_id FROM votes WHERE user_id = :user_id"),
                {"user_id": user_id},
            )
            return frozenset(row[0] for row in result.fetchall())
