"""Account service: keeps a local row per Clerk user."""

from sqlalchemy.ext.asyncio import AsyncSession

from models import User
from repositories.user_repository import PLACEHOLDER_EMAIL_DOMAIN, UserRepository
from schemas import AccountProfile
from services.clerk_service import fetch_user_data


def is_placeholder_email(email: str | None) -> bool:
    """Placeholder accounts are created on first API access before Clerk data arrives."""
    return bool(email) and email.endswith(f"@{PLACEHOLDER_EMAIL_DOMAIN}")


def _to_account_profile(user: User) -> AccountProfile:
    return AccountProfile(
        user_id=user.id,
        email=None if is_placeholder_email(user.email) else user.email,
        display_name=user.display_name,
    )


async def ensure_account(db: AsyncSession, user_id: str) -> AccountProfile:
    """Get the caller's account row, creating it on first sight.

    The row must exist before a certificate references it. Placeholder rows
    are filled in from Clerk once; a failed lookup keeps the placeholder.
    """
    user_repo = UserRepository(db)
    user = await user_repo.get_or_create(user_id)

    if is_placeholder_email(user.email):
        clerk_data = await fetch_user_data(user_id)
        if clerk_data and clerk_data.email:
            user = await user_repo.upsert(
                user_id,
                email=clerk_data.email,
                first_name=clerk_data.first_name,
                last_name=clerk_data.last_name,
                avatar_url=clerk_data.avatar_url,
            )

    return _to_account_profile(user)
