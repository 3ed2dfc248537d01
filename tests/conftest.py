"""Shared test fixtures for MorningCheck tests."""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from morningcheck.schemas.project import CheckIn, Project, User
from morningcheck.services.persistence.base import PersistenceService
from morningcheck.store.state import AppState
from morningcheck.store.store import Store


TODAY = "2026-03-10"
YESTERDAY = "2026-03-09"
NOW_ISO = "2026-03-10T01:30:00+00:00"


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def fixed_clock():
    # 12:00 in Asia/Seoul on TODAY
    return lambda: datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc)


@pytest.fixture
def owner():
    return User(id="user-owner", name="Minji Kim", email="minji@example.com")


@pytest.fixture
def member():
    return User(id="user-member", name="Jisoo Park", email="jisoo@example.com")


@pytest.fixture
def outsider():
    return User(id="user-outsider", name="Hyun Lee", email="hyun@example.com")


@pytest.fixture
def make_check_in():
    counter = {"n": 0}

    def _make(user_id: str, date: str, condition: int = 7, created_at: str = None, note: str = ""):
        counter["n"] += 1
        return CheckIn(
            id=f"checkin-{counter['n']}",
            userId=user_id,
            date=date,
            condition=condition,
            note=note,
            createdAt=created_at or f"{date}T00:00:{counter['n']:02d}+00:00",
        )

    return _make


@pytest.fixture
def sample_project(owner, member):
    """Invite-only project with two members, owned by owner."""
    return Project(
        id="project-1",
        name="Morning Crew",
        description="Daily check-ins",
        icon="☀️",
        iconType="emoji",
        inviteCode="ABCD1234",
        visibilityType="invite",
        members=[owner, member],
        createdBy=owner.id,
        createdAt="2026-03-01T00:00:00+00:00",
    )


@pytest.fixture
def public_project(owner):
    return Project(
        id="project-public",
        name="Open Crew",
        inviteCode="OPEN2026",
        visibilityType="public",
        members=[owner],
        createdBy=owner.id,
        createdAt="2026-03-02T00:00:00+00:00",
    )


@pytest.fixture
def request_project(owner):
    return Project(
        id="project-request",
        name="Ask First",
        inviteCode="ASKME123",
        visibilityType="request",
        members=[owner],
        createdBy=owner.id,
        createdAt="2026-03-03T00:00:00+00:00",
    )


@pytest.fixture
def sample_project_row():
    """Raw persistence row for project-1 with nested collections."""
    return {
        "id": "project-1",
        "name": "Morning Crew",
        "description": "Daily check-ins",
        "icon": "☀️",
        "icon_type": "emoji",
        "invite_code": "ABCD1234",
        "visibility_type": "invite",
        "created_by": "user-owner",
        "created_at": "2026-03-01T00:00:00+00:00",
        "updated_at": "2026-03-05T00:00:00+00:00",
        "deleted_at": None,
        "archived_at": None,
        "members": [
            {
                "user_id": "user-owner",
                "user": {"display_name": "Minji Kim", "avatar_url": "https://cdn.example.com/minji.png"},
            },
            {"user_id": "user-member", "user": {"display_name": "Jisoo Park", "avatar_url": None}},
        ],
        "check_ins": [
            {
                "id": "c-1",
                "user_id": "user-owner",
                "check_in_date": TODAY,
                "condition": 8,
                "note": "Slept well",
                "created_at": "2026-03-10T00:10:00+00:00",
            },
            {
                "id": "c-2",
                "user_id": "user-member",
                "check_in_date": YESTERDAY,
                "condition": 5,
                "note": None,
                "created_at": "2026-03-09T00:10:00+00:00",
            },
        ],
        "invitations": [
            {
                "id": "inv-1",
                "project_id": "project-1",
                "inviter_id": "user-owner",
                "invitee_email": "new@example.com",
                "status": "pending",
                "invited_at": "2026-03-08T00:00:00+00:00",
                "responded_at": None,
            }
        ],
        "join_requests": [],
        "stats": [],
    }


# ─────────────────────────────────────────────────────────────────
# Infrastructure mocks
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_collection():
    collection = AsyncMock()
    # Motor's find() returns a cursor synchronously (not a coroutine)
    collection.find = MagicMock()
    return collection


@pytest.fixture
def mock_db(mock_collection):
    db = MagicMock()
    db.__getitem__ = MagicMock(return_value=mock_collection)
    return db


@pytest.fixture
def mock_persistence():
    # Async methods become AsyncMock, set_access_token stays a plain mock
    return MagicMock(spec=PersistenceService)


@pytest.fixture
def signed_in_store(owner, sample_project, fixed_clock):
    """In-memory store with owner signed in and sample_project cached."""
    return Store(
        tz_name="Asia/Seoul",
        clock=fixed_clock,
        initial_state=AppState(
            currentUser=owner,
            isAuthenticated=True,
            projects=[sample_project],
            currentProjectId=sample_project.id,
        ),
    )
