"""
Postgres repository for integrations.

One row per (user_id, type); enforced by a unique constraint so upserts
never create a second record.
"""

from datetime import datetime
from typing import Any

from psycopg.types.json import Jsonb
from pydantic import ValidationError

from app.db.helpers import execute_query, fetch_all, fetch_one, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.followup_domain import Integration, IntegrationType
from app.repositories.base import ReminderStoreError

logger = get_logger(__name__)


class IntegrationRepository:
    """Persistence helpers for the integrations table."""

    SELECT_COLUMNS = "id, user_id, type, enabled, config, last_sync_at, created_at, updated_at"

    @staticmethod
    def _row_to_integration(row: dict | None) -> Integration | None:
        if not row:
            return None

        try:
            return Integration.model_validate(
                {**row, "id": str(row["id"]), "config": row.get("config") or {}}
            )
        except ValidationError as e:
            raise ReminderStoreError(
                f"Invalid integration row: {e}", operation="row_to_integration", recoverable=False
            ) from e

    @with_db_retry(max_retries=2)
    async def get(self, user_id: str, integration_type: IntegrationType) -> Integration | None:
        query = f"SELECT {self.SELECT_COLUMNS} FROM integrations WHERE user_id = %s AND type = %s"
        row = await fetch_one(query, (user_id, integration_type))
        return self._row_to_integration(row)

    @with_db_retry(max_retries=2)
    async def list_for_user(self, user_id: str) -> list[Integration]:
        query = f"SELECT {self.SELECT_COLUMNS} FROM integrations WHERE user_id = %s ORDER BY type"
        rows = await fetch_all(query, (user_id,))
        return [self._row_to_integration(row) for row in rows]

    @with_db_retry(max_retries=2)
    async def upsert(
        self,
        user_id: str,
        integration_type: IntegrationType,
        enabled: bool = True,
        config: dict[str, Any] | None = None,
    ) -> Integration:
        query = f"""
            INSERT INTO integrations (user_id, type, enabled, config)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (user_id, type)
            DO UPDATE SET
                enabled = EXCLUDED.enabled,
                config = EXCLUDED.config,
                updated_at = NOW()
            RETURNING {self.SELECT_COLUMNS}
        """
        row = await fetch_one(query, (user_id, integration_type, enabled, Jsonb(config or {})))
        logger.info(
            "Integration configured", user_id=user_id, type=integration_type, enabled=enabled
        )
        return self._row_to_integration(row)

    @with_db_retry(max_retries=2)
    async def list_enabled(self, integration_type: IntegrationType) -> list[Integration]:
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM integrations
            WHERE type = %s AND enabled = TRUE
            ORDER BY user_id
        """
        rows = await fetch_all(query, (integration_type,))
        return [self._row_to_integration(row) for row in rows]

    @with_db_retry(max_retries=2)
    async def touch_last_sync(
        self, user_id: str, integration_type: IntegrationType, synced_at: datetime
    ) -> None:
        """Record a completed sync pass. No-op if the integration row is absent."""
        await execute_query(
            """
            UPDATE integrations
            SET last_sync_at = %s, updated_at = NOW()
            WHERE user_id = %s AND type = %s
            """,
            (synced_at, user_id, integration_type),
        )


integration_repository = IntegrationRepository()
