"""
Tests for the membership pipeline.

Covers joining by invite code for each visibility, join requests,
invitations and leaving, including ALREADY_MEMBER tolerance and rollback.
"""

import pytest

from common.utils.exceptions import (
    ConflictException,
    ForbiddenException,
    RemoteCallException,
    ValidationException,
)
from morningcheck.pipelines.membership import (
    accept_invitation_pipeline,
    approve_join_request_pipeline,
    cancel_invitation_pipeline,
    decline_invitation_pipeline,
    get_invitation_history_pipeline,
    get_join_request_pipeline,
    get_pending_invitations_pipeline,
    invite_member_pipeline,
    join_by_code_pipeline,
    join_project_pipeline,
    leave_project_pipeline,
    reject_join_request_pipeline,
    request_to_join_pipeline,
)
from morningcheck.schemas.project import ProjectInvitation, ProjectJoinRequest
from morningcheck.services.project.normalizer import project_to_row
from morningcheck.store import AppState, Store


NOW = "2026-03-10T01:30:00+00:00"


def with_member(project, user):
    return project.model_copy(update={"members": [*project.members, user]})


@pytest.fixture
def invitation(sample_project, owner, outsider):
    return ProjectInvitation(
        id="inv-1",
        projectId=sample_project.id,
        inviterId=owner.id,
        email=outsider.email,
        status="pending",
        invitedAt="2026-03-08T00:00:00+00:00",
    )


@pytest.fixture
def outsider_store(outsider, sample_project, public_project, request_project, fixed_clock):
    """Outsider signed in; three projects cached, none joined."""
    return Store(
        tz_name="Asia/Seoul",
        clock=fixed_clock,
        initial_state=AppState(
            currentUser=outsider,
            isAuthenticated=True,
            projects=[sample_project, public_project, request_project],
        ),
    )


# ─────────────────────────────────────────────────────────────────
# Joining
# ─────────────────────────────────────────────────────────────────


class TestJoinByCode:
    @pytest.mark.asyncio
    async def test_public_project_joins_directly(self, mock_persistence, outsider_store, public_project, outsider):
        mock_persistence.get_project_by_id.return_value = project_to_row(with_member(public_project, outsider))

        project = await join_by_code_pipeline(mock_persistence, outsider_store, "open2026")

        mock_persistence.join_project.assert_awaited_once_with("project-public", "user-outsider")
        assert project.has_member(outsider.id)
        assert outsider_store.state.currentProjectId == "project-public"

    @pytest.mark.asyncio
    async def test_remote_already_member_counts_as_success(self, mock_persistence, outsider_store,
                                                           public_project, outsider):
        mock_persistence.join_project.side_effect = ConflictException(message="dup", code="ALREADY_MEMBER")
        mock_persistence.get_project_by_id.return_value = project_to_row(with_member(public_project, outsider))

        project = await join_by_code_pipeline(mock_persistence, outsider_store, "OPEN2026")

        assert project.has_member(outsider.id)

    @pytest.mark.asyncio
    async def test_other_remote_conflicts_propagate(self, mock_persistence, outsider_store):
        mock_persistence.join_project.side_effect = ConflictException(message="gone", code="PROJECT_ARCHIVED")

        with pytest.raises(ConflictException):
            await join_by_code_pipeline(mock_persistence, outsider_store, "OPEN2026")

    @pytest.mark.asyncio
    async def test_request_project_sends_join_request(self, mock_persistence, outsider_store, request_project):
        mock_persistence.get_project_by_id.return_value = project_to_row(request_project)
        mock_persistence.get_join_request.return_value = {
            "id": "jr-1", "user_id": "user-outsider", "status": "pending", "requested_at": NOW,
        }

        project = await join_by_code_pipeline(mock_persistence, outsider_store, "askme123")

        mock_persistence.request_to_join.assert_awaited_once_with("project-request", "user-outsider")
        assert project.id == "project-request"
        assert not project.has_member("user-outsider")

    @pytest.mark.asyncio
    async def test_invite_only_without_invitation(self, mock_persistence, outsider_store):
        with pytest.raises(ForbiddenException) as exc_info:
            await join_by_code_pipeline(mock_persistence, outsider_store, "ABCD1234")

        assert exc_info.value.code == "JOIN_NOT_ALLOWED"
        mock_persistence.accept_invitation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invite_only_accepts_pending_invitation(self, mock_persistence, outsider, sample_project,
                                                          invitation, fixed_clock):
        invited = sample_project.model_copy(update={"invitations": [invitation]})
        store = Store(clock=fixed_clock, initial_state=AppState(
            currentUser=outsider, isAuthenticated=True, projects=[invited],
        ))
        mock_persistence.get_project_by_id.return_value = project_to_row(with_member(invited, outsider))

        project = await join_by_code_pipeline(mock_persistence, store, "ABCD1234")

        mock_persistence.accept_invitation.assert_awaited_once_with("project-1", "user-outsider", "inv-1")
        assert project.has_member(outsider.id)
        assert store.state.currentProjectId == "project-1"

    @pytest.mark.asyncio
    async def test_unknown_code_reloads_then_fails(self, mock_persistence, outsider_store):
        mock_persistence.get_public_projects.return_value = []

        with pytest.raises(ConflictException) as exc_info:
            await join_by_code_pipeline(mock_persistence, outsider_store, "NOPE0000")

        assert exc_info.value.code == "INVALID_INVITE_CODE"
        mock_persistence.get_public_projects.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_existing_member_only_selects(self, mock_persistence, signed_in_store):
        project = await join_by_code_pipeline(mock_persistence, signed_in_store, "ABCD1234")

        assert project.id == "project-1"
        mock_persistence.join_project.assert_not_awaited()


class TestJoinProject:
    @pytest.mark.asyncio
    async def test_not_public(self, mock_persistence, outsider_store):
        with pytest.raises(ForbiddenException):
            await join_project_pipeline(mock_persistence, outsider_store, "project-1")

        mock_persistence.join_project.assert_not_awaited()


class TestLeaveProject:
    @pytest.mark.asyncio
    async def test_member_leaves(self, mock_persistence, member, sample_project, fixed_clock):
        store = Store(clock=fixed_clock, initial_state=AppState(
            currentUser=member, isAuthenticated=True,
            projects=[sample_project], currentProjectId="project-1",
        ))
        mock_persistence.get_project_by_id.return_value = None

        await leave_project_pipeline(mock_persistence, store, "project-1")

        mock_persistence.leave_project.assert_awaited_once_with("project-1", "user-member")
        assert store.state.projects == []
        assert store.state.currentProjectId is None

    @pytest.mark.asyncio
    async def test_member_returns_when_remote_fails(self, mock_persistence, member, sample_project, fixed_clock):
        store = Store(clock=fixed_clock, initial_state=AppState(
            currentUser=member, isAuthenticated=True, projects=[sample_project],
        ))
        mock_persistence.leave_project.side_effect = RemoteCallException(message="boom")

        with pytest.raises(RemoteCallException):
            await leave_project_pipeline(mock_persistence, store, "project-1")

        assert store.state.find_project("project-1").has_member(member.id)

    @pytest.mark.asyncio
    async def test_owner_cannot_leave(self, mock_persistence, signed_in_store):
        with pytest.raises(ForbiddenException) as exc_info:
            await leave_project_pipeline(mock_persistence, signed_in_store, "project-1")

        assert exc_info.value.code == "OWNER_CANNOT_LEAVE"
        mock_persistence.leave_project.assert_not_awaited()


# ─────────────────────────────────────────────────────────────────
# Join requests
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def owner_with_request(owner, outsider, request_project, fixed_clock):
    request = ProjectJoinRequest(
        id="jr-1", projectId=request_project.id, userId=outsider.id,
        status="pending", requestedAt=NOW,
    )
    project = request_project.model_copy(update={"joinRequests": [request]})
    return Store(clock=fixed_clock, initial_state=AppState(
        currentUser=owner, isAuthenticated=True, projects=[project],
    ))


class TestJoinRequests:
    @pytest.mark.asyncio
    async def test_pending_request_is_not_resent(self, mock_persistence, outsider, request_project, fixed_clock):
        request = ProjectJoinRequest(
            id="jr-1", projectId=request_project.id, userId=outsider.id,
            status="pending", requestedAt=NOW,
        )
        store = Store(clock=fixed_clock, initial_state=AppState(
            currentUser=outsider, isAuthenticated=True,
            projects=[request_project.model_copy(update={"joinRequests": [request]})],
        ))

        result = await request_to_join_pipeline(mock_persistence, store, "project-request")

        assert result.id == "jr-1"
        mock_persistence.request_to_join.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_join_request_missing(self, mock_persistence, outsider_store):
        mock_persistence.get_join_request.return_value = None

        assert await get_join_request_pipeline(mock_persistence, outsider_store, "project-request") is None

    @pytest.mark.asyncio
    async def test_owner_approves(self, mock_persistence, owner_with_request, request_project, outsider):
        mock_persistence.get_project_by_id.return_value = project_to_row(with_member(request_project, outsider))

        project = await approve_join_request_pipeline(
            mock_persistence, owner_with_request, "project-request", "jr-1"
        )

        mock_persistence.process_join_request.assert_awaited_once_with("jr-1", "user-owner", approve=True)
        assert project.has_member(outsider.id)

    @pytest.mark.asyncio
    async def test_owner_rejects_with_reason(self, mock_persistence, owner_with_request, request_project):
        mock_persistence.get_project_by_id.return_value = project_to_row(request_project)

        await reject_join_request_pipeline(
            mock_persistence, owner_with_request, "project-request", "jr-1", reason="Team is full"
        )

        mock_persistence.process_join_request.assert_awaited_once_with(
            "jr-1", "user-owner", approve=False, reason="Team is full"
        )

    @pytest.mark.asyncio
    async def test_reason_too_long(self, mock_persistence, owner_with_request):
        with pytest.raises(ValidationException):
            await reject_join_request_pipeline(
                mock_persistence, owner_with_request, "project-request", "jr-1", reason="x" * 201
            )

        mock_persistence.process_join_request.assert_not_awaited()


# ─────────────────────────────────────────────────────────────────
# Invitations
# ─────────────────────────────────────────────────────────────────


class TestInvitations:
    @pytest.mark.asyncio
    async def test_invite_returns_remote_invitation(self, mock_persistence, signed_in_store, sample_project_row):
        mock_persistence.get_project_by_id.return_value = sample_project_row

        invitation = await invite_member_pipeline(
            mock_persistence, signed_in_store, "project-1", " New@Example.com"
        )

        mock_persistence.invite_member.assert_awaited_once_with("project-1", "user-owner", "new@example.com")
        assert invitation.id == "inv-1"
        assert [i.id for i in signed_in_store.state.current_project.invitations] == ["inv-1"]

    @pytest.mark.asyncio
    async def test_invite_rolls_back_on_remote_conflict(self, mock_persistence, signed_in_store):
        mock_persistence.invite_member.side_effect = ConflictException(
            message="dup", code="DUPLICATE_INVITATION"
        )

        with pytest.raises(ConflictException):
            await invite_member_pipeline(mock_persistence, signed_in_store, "project-1", "new@example.com")

        assert signed_in_store.state.current_project.invitations == []

    @pytest.mark.asyncio
    async def test_self_invite_makes_no_remote_call(self, mock_persistence, signed_in_store):
        with pytest.raises(ValidationException) as exc_info:
            await invite_member_pipeline(mock_persistence, signed_in_store, "project-1", "minji@example.com")

        assert exc_info.value.code == "SELF_INVITATION"
        mock_persistence.invite_member.assert_not_awaited()
        assert signed_in_store.state.current_project.history == []

    @pytest.mark.asyncio
    async def test_cancel(self, mock_persistence, owner, sample_project, invitation, fixed_clock):
        store = Store(clock=fixed_clock, initial_state=AppState(
            currentUser=owner, isAuthenticated=True,
            projects=[sample_project.model_copy(update={"invitations": [invitation]})],
        ))
        mock_persistence.get_project_by_id.return_value = None

        cancelled = await cancel_invitation_pipeline(mock_persistence, store, "project-1", "inv-1")

        assert cancelled.status == "cancelled"
        mock_persistence.cancel_invitation.assert_awaited_once_with("inv-1", "user-owner")

    @pytest.mark.asyncio
    async def test_accept_uncached_project(self, mock_persistence, outsider, sample_project, fixed_clock):
        store = Store(clock=fixed_clock, initial_state=AppState(currentUser=outsider, isAuthenticated=True))
        mock_persistence.get_project_by_id.return_value = project_to_row(with_member(sample_project, outsider))

        project = await accept_invitation_pipeline(mock_persistence, store, "project-1", "inv-1")

        assert project.has_member(outsider.id)
        assert store.state.currentProjectId == "project-1"

    @pytest.mark.asyncio
    async def test_accept_rolls_back_on_failure(self, mock_persistence, outsider, sample_project, invitation,
                                                fixed_clock):
        invited = sample_project.model_copy(update={"invitations": [invitation]})
        store = Store(clock=fixed_clock, initial_state=AppState(
            currentUser=outsider, isAuthenticated=True, projects=[invited],
        ))
        mock_persistence.accept_invitation.side_effect = RemoteCallException(message="boom")

        with pytest.raises(RemoteCallException):
            await accept_invitation_pipeline(mock_persistence, store, "project-1", "inv-1")

        project = store.state.find_project("project-1")
        assert not project.has_member(outsider.id)
        assert project.invitations[0].status == "pending"

    @pytest.mark.asyncio
    async def test_decline(self, mock_persistence, outsider, sample_project, invitation, fixed_clock):
        invited = sample_project.model_copy(update={"invitations": [invitation]})
        store = Store(clock=fixed_clock, initial_state=AppState(
            currentUser=outsider, isAuthenticated=True, projects=[invited],
        ))
        mock_persistence.get_project_by_id.return_value = None

        await decline_invitation_pipeline(mock_persistence, store, "project-1", "inv-1")

        mock_persistence.decline_invitation.assert_awaited_once_with("inv-1", "user-outsider")

    @pytest.mark.asyncio
    async def test_pending_invitations_filters_processed(self, mock_persistence, outsider_store):
        mock_persistence.get_pending_invitations.return_value = [
            {"id": "inv-1", "project_id": "project-1", "invitee_email": "hyun@example.com", "status": "pending"},
            {"id": "inv-2", "project_id": "project-2", "invitee_email": "hyun@example.com", "status": "accepted"},
        ]

        invitations = await get_pending_invitations_pipeline(mock_persistence, outsider_store)

        assert [i.id for i in invitations] == ["inv-1"]
        mock_persistence.get_pending_invitations.assert_awaited_once_with("hyun@example.com", None)

    @pytest.mark.asyncio
    async def test_history_is_stored(self, mock_persistence, signed_in_store):
        mock_persistence.get_invitation_history.return_value = [
            {"id": "h-1", "action": "invited", "actor_id": "user-owner", "actor_name": "Minji Kim",
             "invitee_email": "new@example.com", "created_at": "2026-03-08T00:00:00+00:00"},
        ]

        history = await get_invitation_history_pipeline(mock_persistence, signed_in_store, "project-1")

        assert [h.id for h in history] == ["h-1"]
        assert signed_in_store.state.current_project.history == history

    @pytest.mark.asyncio
    async def test_resync_keeps_loaded_history(self, mock_persistence, signed_in_store, sample_project_row):
        mock_persistence.get_invitation_history.return_value = [
            {"id": "h-1", "action": "invited", "created_at": "2026-03-08T00:00:00+00:00"},
        ]
        await get_invitation_history_pipeline(mock_persistence, signed_in_store, "project-1")
        mock_persistence.get_project_by_id.return_value = sample_project_row

        await invite_member_pipeline(mock_persistence, signed_in_store, "project-1", "other@example.com")

        assert [h.id for h in signed_in_store.state.current_project.history] == ["h-1"]
