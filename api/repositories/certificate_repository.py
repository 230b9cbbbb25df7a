"""Repository for certificate operations."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Certificate, utcnow
from repositories.utils import log_slow_query


class CertificateRepository:
    """Repository for certificate record operations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @log_slow_query("get_certificate")
    async def get_by_cert_id(self, cert_id: str) -> Certificate | None:
        """Get a certificate by its id (for public verification)."""
        result = await self.db.execute(
            select(Certificate).where(Certificate.cert_id == cert_id)
        )
        return result.scalar_one_or_none()

    @log_slow_query("upsert_certificate")
    async def upsert(
        self,
        cert_id: str,
        *,
        user_id: str,
        full_name: str,
        course_key: str,
        storage_path: str | None = None,
    ) -> bool:
        """Insert or update a certificate keyed by cert_id in one statement.

        On conflict the existing row is only updated when it belongs to
        ``user_id``. issued_at is written on insert and never touched again.
        storage_path is only overwritten when a non-empty value is given.

        Returns False when the id is held by another account (row unchanged).
        Does NOT commit; the caller owns the transaction.
        """
        bind = self.db.get_bind()
        dialect = bind.dialect.name if bind else ""

        now = utcnow()
        values = {
            "cert_id": cert_id,
            "user_id": user_id,
            "full_name": full_name,
            "course_key": course_key,
            "storage_path": storage_path,
            "issued_at": now,
            "created_at": now,
            "updated_at": now,
        }

        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            return await self._upsert_fallback(values)

        stmt = insert(Certificate).values(**values)
        # Column.onupdate does not fire for ON CONFLICT DO UPDATE
        update_values = {
            "full_name": stmt.excluded.full_name,
            "course_key": stmt.excluded.course_key,
            "updated_at": stmt.excluded.updated_at,
        }
        if storage_path:
            update_values["storage_path"] = stmt.excluded.storage_path

        stmt = stmt.on_conflict_do_update(
            index_elements=["cert_id"],
            set_=update_values,
            where=Certificate.user_id == stmt.excluded.user_id,
        )

        if dialect == "postgresql":
            result = await self.db.execute(stmt.returning(Certificate.cert_id))
            return result.scalar_one_or_none() is not None

        await self.db.execute(stmt)
        # SQLite doesn't support RETURNING well, fetch separately
        owner = await self.db.scalar(
            select(Certificate.user_id)
            .where(Certificate.cert_id == cert_id)
            .execution_options(populate_existing=True)
        )
        return owner == user_id

    async def _upsert_fallback(self, values: dict) -> bool:
        """Get-then-write for dialects without ON CONFLICT."""
        certificate = await self.db.get(Certificate, values["cert_id"])
        if certificate is None:
            self.db.add(Certificate(**values))
            await self.db.flush()
            return True

        if certificate.user_id != values["user_id"]:
            return False

        certificate.full_name = values["full_name"]
        certificate.course_key = values["course_key"]
        if values["storage_path"]:
            certificate.storage_path = values["storage_path"]
        certificate.updated_at = values["updated_at"]
        await self.db.flush()
        return True
