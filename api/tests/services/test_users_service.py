"""Tests for users_service module.

Tests cover:
- is_placeholder_email detection
- ensure_account creating rows and returning the account profile
- placeholder rows filled from Clerk, and kept when Clerk has nothing
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from services.clerk_service import ClerkUserData
from services.users_service import ensure_account, is_placeholder_email
from tests.factories import PlaceholderUserFactory, UserFactory

pytestmark = pytest.mark.unit


@pytest.fixture
def mock_repo():
    with patch("services.users_service.UserRepository", autospec=True) as repo_class:
        yield repo_class.return_value


class TestIsPlaceholderEmail:
    def test_detects_placeholder(self):
        assert is_placeholder_email("user_1@placeholder.local") is True

    def test_real_and_missing_emails(self):
        assert is_placeholder_email("ada@example.com") is False
        assert is_placeholder_email("") is False
        assert is_placeholder_email(None) is False


class TestEnsureAccount:
    async def test_returns_existing_profile(self, mock_repo, no_clerk_profile_lookup):
        user = UserFactory.build(first_name="Ada", last_name="Lovelace")
        mock_repo.get_or_create = AsyncMock(return_value=user)

        profile = await ensure_account(MagicMock(), user.id)

        assert profile.user_id == user.id
        assert profile.email == user.email
        assert profile.display_name == "Ada Lovelace"
        no_clerk_profile_lookup.assert_not_awaited()

    async def test_placeholder_is_filled_from_clerk(self, mock_repo):
        placeholder = PlaceholderUserFactory.build(id="user_1")
        synced = UserFactory.build(
            id="user_1", email="grace@example.com", first_name="Grace", last_name=None
        )
        mock_repo.get_or_create = AsyncMock(return_value=placeholder)
        mock_repo.upsert = AsyncMock(return_value=synced)
        clerk_data = ClerkUserData(
            email="grace@example.com",
            first_name="Grace",
            last_name=None,
            avatar_url=None,
        )

        with patch(
            "services.users_service.fetch_user_data",
            new=AsyncMock(return_value=clerk_data),
        ):
            profile = await ensure_account(MagicMock(), "user_1")

        mock_repo.upsert.assert_awaited_once_with(
            "user_1",
            email="grace@example.com",
            first_name="Grace",
            last_name=None,
            avatar_url=None,
        )
        assert profile.email == "grace@example.com"
        assert profile.display_name == "Grace"

    async def test_placeholder_kept_when_clerk_unavailable(self, mock_repo):
        placeholder = PlaceholderUserFactory.build(id="user_1")
        mock_repo.get_or_create = AsyncMock(return_value=placeholder)
        mock_repo.upsert = AsyncMock()

        profile = await ensure_account(MagicMock(), "user_1")

        mock_repo.upsert.assert_not_awaited()
        # Placeholder addresses are never offered as a name source
        assert profile.email is None
        assert profile.display_name is None
