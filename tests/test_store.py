"""
Tests for the client state store.

Covers the pure reducer, dispatch/persistence through a mocked MongoDB
collection, hydration and optimistic rollback.
"""

import asyncio

import pytest
from unittest.mock import MagicMock

from pymongo.errors import PyMongoError

from common.utils.exceptions import RemoteCallException, ValidationException
from morningcheck.schemas.project import ProjectInvitation
from morningcheck.store import (
    AcceptInvitation,
    AddCheckIn,
    AddProject,
    AppState,
    InviteMember,
    Login,
    Logout,
    RemoveCheckIn,
    RemoveMember,
    RemoveProject,
    ReplaceProject,
    RevertProject,
    SetCurrentProjectId,
    SetProjects,
    SnapshotRepository,
    Store,
    UpdateProfile,
    UpdateProject,
    reduce,
)


TODAY = "2026-03-10"
NOW = "2026-03-10T01:30:00+00:00"


@pytest.fixture
def state(owner, sample_project):
    return AppState(
        currentUser=owner,
        isAuthenticated=True,
        projects=[sample_project],
        currentProjectId=sample_project.id,
    )


# ─────────────────────────────────────────────────────────────────
# Reducer: session
# ─────────────────────────────────────────────────────────────────


class TestSessionActions:
    def test_login(self, owner):
        new_state = reduce(AppState(), Login(user=owner), TODAY)

        assert new_state.currentUser == owner
        assert new_state.isAuthenticated is True

    def test_logout_clears_user_and_selection(self, state):
        new_state = reduce(state, Logout(), TODAY)

        assert new_state.currentUser is None
        assert new_state.isAuthenticated is False
        assert new_state.currentProjectId is None
        # Input state is never mutated
        assert state.currentUser is not None

    def test_update_profile_keeps_id(self, state, owner):
        new_state = reduce(state, UpdateProfile(changes={"name": "Minji", "id": "hacked"}), TODAY)

        assert new_state.currentUser.name == "Minji"
        assert new_state.currentUser.id == owner.id

    def test_update_profile_signed_out_is_noop(self):
        initial = AppState()

        assert reduce(initial, UpdateProfile(changes={"name": "x"}), TODAY) is initial

    def test_unknown_action(self, state):
        with pytest.raises(TypeError):
            reduce(state, object(), TODAY)


# ─────────────────────────────────────────────────────────────────
# Reducer: projects
# ─────────────────────────────────────────────────────────────────


class TestProjectActions:
    def test_add_project_becomes_current(self, state, public_project):
        new_state = reduce(state, AddProject(project=public_project), TODAY)

        assert [p.id for p in new_state.projects] == ["project-1", "project-public"]
        assert new_state.currentProjectId == "project-public"

    def test_update_project_ignores_immutable_fields(self, state):
        new_state = reduce(
            state,
            UpdateProject(project_id="project-1", changes={
                "name": "Renamed", "id": "other", "visibilityType": "public",
            }),
            TODAY,
        )

        project = new_state.find_project("project-1")
        assert project.name == "Renamed"
        assert project.visibilityType == "invite"

    def test_update_project_only_immutable_fields_is_noop(self, state):
        assert reduce(state, UpdateProject(project_id="project-1", changes={"id": "x"}), TODAY) is state

    def test_update_unknown_project_is_noop(self, state):
        assert reduce(state, UpdateProject(project_id="nope", changes={"name": "x"}), TODAY) is state

    def test_update_project_rejects_invalid_values(self, state):
        with pytest.raises(ValidationException):
            reduce(state, UpdateProject(project_id="project-1", changes={"iconType": "gif"}), TODAY)

    def test_update_members_recomputes_stats(self, state, owner):
        new_state = reduce(state, UpdateProject(project_id="project-1", changes={"members": [owner]}), TODAY)

        assert new_state.find_project("project-1").stats.memberCount == 1

    def test_replace_project(self, state, sample_project):
        renamed = sample_project.model_copy(update={"name": "From server"})

        new_state = reduce(state, ReplaceProject(project=renamed), TODAY)

        assert new_state.find_project("project-1").name == "From server"
        assert len(new_state.projects) == 1

    def test_replace_unknown_project_appends(self, state, public_project):
        new_state = reduce(state, ReplaceProject(project=public_project), TODAY)

        assert len(new_state.projects) == 2
        assert new_state.currentProjectId == "project-1"

    def test_remove_current_project_clears_selection(self, state):
        new_state = reduce(state, RemoveProject(project_id="project-1"), TODAY)

        assert new_state.projects == []
        assert new_state.currentProjectId is None

    def test_set_projects_and_current(self, state, public_project):
        new_state = reduce(state, SetProjects(projects=[public_project]), TODAY)
        new_state = reduce(new_state, SetCurrentProjectId(project_id="project-public"), TODAY)

        assert new_state.current_project == public_project


# ─────────────────────────────────────────────────────────────────
# Reducer: check-ins and membership
# ─────────────────────────────────────────────────────────────────


class TestCheckInActions:
    def test_add_check_in_refreshes_stats(self, state, owner, make_check_in):
        check_in = make_check_in(owner.id, TODAY, condition=9)

        new_state = reduce(state, AddCheckIn(project_id="project-1", check_in=check_in), TODAY)

        project = new_state.find_project("project-1")
        assert project.checkIns == [check_in]
        assert project.stats.checkInCount == 1
        assert project.stats.participationRate == 50
        assert project.lastCheckIn.userDisplayName == owner.name

    def test_remove_check_in(self, state, owner, make_check_in):
        check_in = make_check_in(owner.id, TODAY)
        with_check_in = reduce(state, AddCheckIn(project_id="project-1", check_in=check_in), TODAY)

        new_state = reduce(with_check_in, RemoveCheckIn(project_id="project-1", check_in_id=check_in.id), TODAY)

        project = new_state.find_project("project-1")
        assert project.checkIns == []
        assert project.stats.checkInCount == 0
        assert project.lastCheckIn is None

    def test_remove_unknown_check_in_is_noop(self, state):
        assert reduce(state, RemoveCheckIn(project_id="project-1", check_in_id="x"), TODAY) is state


class TestMembershipActions:
    def test_invite_then_accept(self, state, outsider):
        invitation = ProjectInvitation(
            id="inv-9", projectId="project-1", inviterId="user-owner",
            email=outsider.email, status="pending", invitedAt=NOW,
        )
        invited = reduce(state, InviteMember(project_id="project-1", invitation=invitation), TODAY)

        accepted = reduce(
            invited,
            AcceptInvitation(project_id="project-1", invitation_id="inv-9", user=outsider, responded_at=NOW),
            TODAY,
        )

        project = accepted.find_project("project-1")
        assert project.invitations[0].status == "accepted"
        assert project.invitations[0].respondedAt == NOW
        assert project.has_member(outsider.id)

    def test_remove_member(self, state, member):
        new_state = reduce(state, RemoveMember(project_id="project-1", user_id=member.id), TODAY)

        assert not new_state.find_project("project-1").has_member(member.id)

    def test_remove_non_member_is_noop(self, state, outsider):
        assert reduce(state, RemoveMember(project_id="project-1", user_id=outsider.id), TODAY) is state


class TestRevertProject:
    def test_keeps_check_in_added_later(self, state, owner, member, make_check_in):
        mine = make_check_in(owner.id, TODAY)
        theirs = make_check_in(member.id, TODAY)
        before = state.find_project("project-1")
        applied_state = reduce(state, AddCheckIn(project_id="project-1", check_in=mine), TODAY)
        later = reduce(applied_state, AddCheckIn(project_id="project-1", check_in=theirs), TODAY)

        new_state = reduce(
            later,
            RevertProject(before=before, applied=applied_state.find_project("project-1")),
            TODAY,
        )

        project = new_state.find_project("project-1")
        assert project.checkIns == [theirs]
        assert project.stats.checkInCount == 1
        assert project.lastCheckIn.userDisplayName == member.name

    def test_puts_removed_member_back_in_place(self, state, owner, member):
        before = state.find_project("project-1")
        applied_state = reduce(state, RemoveMember(project_id="project-1", user_id=owner.id), TODAY)

        new_state = reduce(
            applied_state,
            RevertProject(before=before, applied=applied_state.find_project("project-1")),
            TODAY,
        )

        assert new_state.find_project("project-1") == before
        assert [m.id for m in new_state.find_project("project-1").members] == [owner.id, member.id]

    def test_keeps_later_rename(self, state):
        before = state.find_project("project-1")
        applied_state = reduce(state, UpdateProject(project_id="project-1", changes={"name": "First"}), TODAY)
        later = reduce(applied_state, UpdateProject(project_id="project-1", changes={"name": "Second"}), TODAY)

        new_state = reduce(
            later,
            RevertProject(before=before, applied=applied_state.find_project("project-1")),
            TODAY,
        )

        assert new_state is later
        assert new_state.find_project("project-1").name == "Second"

    def test_removed_project_stays_removed(self, state):
        before = state.find_project("project-1")
        applied_state = reduce(state, UpdateProject(project_id="project-1", changes={"name": "First"}), TODAY)
        removed = reduce(applied_state, RemoveProject(project_id="project-1"), TODAY)

        new_state = reduce(
            removed,
            RevertProject(before=before, applied=applied_state.find_project("project-1")),
            TODAY,
        )

        assert new_state is removed


# ─────────────────────────────────────────────────────────────────
# Snapshots
# ─────────────────────────────────────────────────────────────────


class TestSnapshot:
    def test_round_trip(self, state):
        assert AppState.from_snapshot(state.to_snapshot()) == state

    @pytest.mark.parametrize("data", [None, "junk", {"projects": "not-a-list"}])
    def test_unreadable_snapshot_gives_initial_state(self, data):
        assert AppState.from_snapshot(data) == AppState()


class TestSnapshotRepository:
    @pytest.mark.asyncio
    async def test_save_upserts_by_key(self, mock_db, mock_collection):
        repository = SnapshotRepository(mock_db, "storesnapshots", "test-key")

        await repository.save({"isAuthenticated": False})

        filter_doc, update_doc = mock_collection.update_one.call_args.args
        assert filter_doc == {"key": "test-key"}
        assert update_doc["$set"]["state"] == {"isAuthenticated": False}
        assert "createdAt" in update_doc["$setOnInsert"]
        assert mock_collection.update_one.call_args.kwargs["upsert"] is True

    @pytest.mark.asyncio
    async def test_load(self, mock_db, mock_collection):
        mock_collection.find_one.return_value = {"key": "test-key", "state": {"isAuthenticated": True}}
        repository = SnapshotRepository(mock_db, "storesnapshots", "test-key")

        assert await repository.load() == {"isAuthenticated": True}

    @pytest.mark.asyncio
    async def test_load_missing(self, mock_db, mock_collection):
        mock_collection.find_one.return_value = None
        repository = SnapshotRepository(mock_db)

        assert await repository.load() is None

    @pytest.mark.asyncio
    async def test_clear(self, mock_db, mock_collection):
        repository = SnapshotRepository(mock_db, "storesnapshots", "test-key")

        await repository.clear()

        mock_collection.delete_one.assert_awaited_once_with({"key": "test-key"})


# ─────────────────────────────────────────────────────────────────
# Store
# ─────────────────────────────────────────────────────────────────


class TestStore:
    @pytest.mark.asyncio
    async def test_dispatch_persists_and_notifies(self, mock_db, mock_collection, owner, fixed_clock):
        store = Store(SnapshotRepository(mock_db), tz_name="Asia/Seoul", clock=fixed_clock)
        seen = []
        store.subscribe(seen.append)

        await store.dispatch(Login(user=owner))

        assert store.state.currentUser == owner
        assert seen == [store.state]
        saved = mock_collection.update_one.call_args.args[1]["$set"]["state"]
        assert saved["currentUser"]["id"] == owner.id

    @pytest.mark.asyncio
    async def test_unchanged_state_is_not_persisted(self, mock_db, mock_collection, fixed_clock):
        store = Store(SnapshotRepository(mock_db), clock=fixed_clock)
        listener = MagicMock()
        store.subscribe(listener)

        await store.dispatch(RemoveProject(project_id="missing"))

        mock_collection.update_one.assert_not_called()
        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsubscribe(self, signed_in_store):
        listener = MagicMock()
        unsubscribe = signed_in_store.subscribe(listener)
        unsubscribe()

        await signed_in_store.dispatch(Logout())

        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_persist_failure_keeps_memory_state(self, mock_db, mock_collection, owner, fixed_clock):
        mock_collection.update_one.side_effect = PyMongoError("connection lost")
        store = Store(SnapshotRepository(mock_db), clock=fixed_clock)

        await store.dispatch(Login(user=owner))

        assert store.state.isAuthenticated is True

    @pytest.mark.asyncio
    async def test_hydrate(self, mock_db, mock_collection, state, fixed_clock):
        mock_collection.find_one.return_value = {"key": "morningcheck-storage", "state": state.to_snapshot()}
        store = Store(SnapshotRepository(mock_db), clock=fixed_clock)

        hydrated = await store.hydrate()

        assert hydrated == state
        assert store.state.currentProjectId == "project-1"

    def test_today_uses_store_timezone(self, fixed_clock):
        # 03:00 UTC is noon in Seoul and the previous evening in Los Angeles
        assert Store(tz_name="Asia/Seoul", clock=fixed_clock).today() == TODAY
        assert Store(tz_name="America/Los_Angeles", clock=fixed_clock).today() == "2026-03-09"

    @pytest.mark.asyncio
    async def test_optimistic_success(self, signed_in_store, owner, make_check_in):
        check_in = make_check_in(owner.id, TODAY)

        async def remote_call():
            assert signed_in_store.state.current_project.checkIns == [check_in]
            return "ok"

        result = await signed_in_store.optimistic(AddCheckIn(project_id="project-1", check_in=check_in), remote_call)

        assert result == "ok"
        assert signed_in_store.state.current_project.checkIns == [check_in]

    @pytest.mark.asyncio
    async def test_optimistic_rolls_back_on_failure(self, signed_in_store, owner, make_check_in):
        before = signed_in_store.state
        check_in = make_check_in(owner.id, TODAY)

        async def remote_call():
            raise RemoteCallException(message="boom")

        with pytest.raises(RemoteCallException):
            await signed_in_store.optimistic(AddCheckIn(project_id="project-1", check_in=check_in), remote_call)

        assert signed_in_store.state == before


    @pytest.mark.asyncio
    async def test_optimistic_needs_project_action(self, signed_in_store, owner):
        async def remote_call():
            return None

        with pytest.raises(TypeError):
            await signed_in_store.optimistic(Login(user=owner), remote_call)

        assert signed_in_store.state.currentUser == owner


class TestOverlappingOptimisticCalls:
    @pytest.fixture
    def store(self, owner, member, sample_project, public_project, fixed_clock):
        crew = public_project.model_copy(update={"members": [owner, member]})
        return Store(
            tz_name="Asia/Seoul",
            clock=fixed_clock,
            initial_state=AppState(
                currentUser=owner,
                isAuthenticated=True,
                projects=[sample_project, crew],
                currentProjectId=sample_project.id,
            ),
        )

    @pytest.mark.asyncio
    async def test_failure_keeps_change_to_other_project(self, store, owner, member, make_check_in):
        release = asyncio.Event()
        check_in = make_check_in(owner.id, TODAY)

        async def failing_check_in():
            await release.wait()
            raise RemoteCallException(message="boom")

        async def leave():
            release.set()

        slow = asyncio.create_task(
            store.optimistic(AddCheckIn(project_id="project-1", check_in=check_in), failing_check_in)
        )
        await asyncio.sleep(0)
        assert store.state.find_project("project-1").checkIns == [check_in]

        await store.optimistic(RemoveMember(project_id="project-public", user_id=member.id), leave)
        with pytest.raises(RemoteCallException):
            await slow

        assert store.state.find_project("project-1").checkIns == []
        assert [m.id for m in store.state.find_project("project-public").members] == [owner.id]

    @pytest.mark.asyncio
    async def test_failure_keeps_other_change_to_same_project(self, store, owner, member, make_check_in):
        release = asyncio.Event()
        mine = make_check_in(owner.id, TODAY)
        theirs = make_check_in(member.id, TODAY)

        async def failing_call():
            await release.wait()
            raise RemoteCallException(message="boom")

        async def succeeding_call():
            release.set()
            return "ok"

        slow = asyncio.create_task(
            store.optimistic(AddCheckIn(project_id="project-1", check_in=mine), failing_call)
        )
        await asyncio.sleep(0)

        assert await store.optimistic(
            AddCheckIn(project_id="project-1", check_in=theirs), succeeding_call
        ) == "ok"
        with pytest.raises(RemoteCallException):
            await slow

        project = store.state.find_project("project-1")
        assert project.checkIns == [theirs]
        assert project.stats.checkInCount == 1
