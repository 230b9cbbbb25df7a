"""User repository for database operations."""

from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models import User
from repositories.utils import log_slow_query

PLACEHOLDER_EMAIL_DOMAIN = "placeholder.local"


def placeholder_email(user_id: str) -> str:
    return f"{user_id}@{PLACEHOLDER_EMAIL_DOMAIN}"


class UserRepository:
    """Repository for User database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @log_slow_query("get_user_by_id")
    async def get_by_id(self, user_id: str) -> User | None:
        """Get a user by their ID."""
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str) -> User:
        """Get user from DB or create placeholder.

        Uses INSERT ... ON CONFLICT to handle concurrent requests safely.
        """
        user = await self.get_by_id(user_id)
        if user:
            return user

        bind = self.db.get_bind()
        dialect = bind.dialect.name if bind else ""

        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as pg_insert

            stmt = (
                pg_insert(User)
                .values(id=user_id, email=placeholder_email(user_id))
                .on_conflict_do_nothing(index_elements=["id"])
            )
            await self.db.execute(stmt)
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as sqlite_insert

            stmt = (
                sqlite_insert(User)
                .values(id=user_id, email=placeholder_email(user_id))
                .on_conflict_do_nothing(index_elements=["id"])
            )
            await self.db.execute(stmt)
        else:
            try:
                async with self.db.begin_nested():
                    self.db.add(User(id=user_id, email=placeholder_email(user_id)))
                    await self.db.flush()
            except IntegrityError:
                pass  # Savepoint rolled back, continue to fetch existing

        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one()

    @log_slow_query("upsert_user")
    async def upsert(
        self,
        user_id: str,
        *,
        email: str,
        first_name: str | None = None,
        last_name: str | None = None,
        avatar_url: str | None = None,
    ) -> User:
        """Insert or update a user in a single query.

        Uses INSERT ... ON CONFLICT DO UPDATE for PostgreSQL/SQLite.
        """
        bind = self.db.get_bind()
        dialect = bind.dialect.name if bind else ""

        values = {
            "id": user_id,
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "avatar_url": avatar_url,
        }
        update_values = {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "avatar_url": avatar_url,
            "updated_at": datetime.now(UTC),
        }

        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as pg_insert

            stmt = (
                pg_insert(User)
                .values(**values)
                .on_conflict_do_update(index_elements=["id"], set_=update_values)
                .returning(User)
            )
            result = await self.db.execute(
                stmt, execution_options={"populate_existing": True}
            )
            return result.scalar_one()

        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as sqlite_insert

            stmt = (
                sqlite_insert(User)
                .values(**values)
                .on_conflict_do_update(index_elements=["id"], set_=update_values)
            )
            await self.db.execute(stmt)
            # SQLite doesn't support RETURNING well, fetch separately
            result = await self.db.execute(
                select(User)
                .where(User.id == user_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one()

        user = await self.get_by_id(user_id)
        if user is None:
            user = User(**values)
            self.db.add(user)
            return user

        user.email = email
        user.first_name = first_name
        user.last_name = last_name
        user.avatar_url = avatar_url
        user.updated_at = datetime.now(UTC)
        return user
