"""
Abstract persistence service interface.

Defines the named remote procedures the engine depends on. Every method
returns the raw payload (rows in persistence shape); normalization happens
in the caller. Failures surface as APIException subclasses.

Example:
    from morningcheck.services.persistence import PersistenceService, RpcPersistenceClient

    def get_persistence(settings) -> PersistenceService:
        return RpcPersistenceClient(
            base_url=settings.PERSISTENCE_URL,
            api_key=settings.PERSISTENCE_API_KEY,
        )
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class PersistenceService(ABC):
    """
    Remote persistence contract.

    Implement this for different backends; tests use an AsyncMock.
    """

    # ─────────────────────────────────────────────────────────────────
    # Projects
    # ─────────────────────────────────────────────────────────────────

    @abstractmethod
    async def create_project(
        self,
        name: str,
        created_by: str,
        invite_code: str,
        visibility_type: str,
        description: Optional[str] = None,
        icon: Optional[str] = None,
        icon_type: Optional[str] = None,
    ) -> Any:
        """
        Create a project; the creator becomes its first member.

        Returns:
            The new project id (or row, depending on the backend)
        """
        pass

    @abstractmethod
    async def update_project(self, project_id: str, updates: Dict[str, Any]) -> Any:
        """Update name, description, icon or iconType."""
        pass

    @abstractmethod
    async def soft_delete_project(self, project_id: str) -> None:
        pass

    @abstractmethod
    async def archive_project(self, project_id: str) -> None:
        pass

    @abstractmethod
    async def restore_project(self, project_id: str) -> None:
        pass

    @abstractmethod
    async def get_project_by_id(
        self,
        project_id: str,
        auth_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Get one project row with nested collections.

        Returns:
            Project row, or None if it does not exist
        """
        pass

    @abstractmethod
    async def get_public_projects(self, auth_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Get listable projects.

        Includes private projects where auth_id is a member or the creator.
        """
        pass

    @abstractmethod
    async def upload_project_icon(
        self,
        content: bytes,
        filename: str,
        user_id: str,
        content_type: Optional[str] = None
    ) -> str:
        """
        Upload an icon image to object storage.

        Returns:
            Public URL of the uploaded file
        """
        pass

    # ─────────────────────────────────────────────────────────────────
    # Membership
    # ─────────────────────────────────────────────────────────────────

    @abstractmethod
    async def join_project(self, project_id: str, user_id: str) -> None:
        pass

    @abstractmethod
    async def request_to_join(self, project_id: str, user_id: str) -> None:
        pass

    @abstractmethod
    async def get_join_request(self, project_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Get the latest join request of a user for a project, if any."""
        pass

    @abstractmethod
    async def process_join_request(
        self,
        request_id: str,
        approver_id: str,
        approve: bool,
        reason: Optional[str] = None
    ) -> None:
        pass

    @abstractmethod
    async def leave_project(self, project_id: str, user_id: str) -> None:
        pass

    # ─────────────────────────────────────────────────────────────────
    # Invitations
    # ─────────────────────────────────────────────────────────────────

    @abstractmethod
    async def invite_member(self, project_id: str, inviter_id: str, email: str) -> Any:
        pass

    @abstractmethod
    async def cancel_invitation(self, invitation_id: str, actor_id: str) -> None:
        pass

    @abstractmethod
    async def accept_invitation(self, project_id: str, user_id: str, invitation_id: str) -> None:
        pass

    @abstractmethod
    async def decline_invitation(self, invitation_id: str, user_id: str) -> None:
        pass

    @abstractmethod
    async def get_pending_invitations(
        self,
        email: str,
        project_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_invitation_history(self, project_id: str) -> List[Dict[str, Any]]:
        pass

    # ─────────────────────────────────────────────────────────────────
    # Check-ins
    # ─────────────────────────────────────────────────────────────────

    @abstractmethod
    async def check_in(
        self,
        project_id: str,
        user_id: str,
        condition: int,
        note: str
    ) -> Any:
        """
        Record a check-in for today.

        Returns:
            The created check-in row (or id)
        """
        pass

    @abstractmethod
    async def cancel_check_in(self, check_in_id: str) -> None:
        pass

    def set_access_token(self, token: Optional[str]) -> None:
        """Act as the signed-in user for later calls. No-op by default."""
        return None

    async def close(self) -> None:
        """Release network resources. Override when the client holds any."""
        return None
