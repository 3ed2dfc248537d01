"""
HTTP client for the persistence service.

Calls named remote procedures (POST {base}/rest/v1/rpc/{name}) with
p_-prefixed parameters and uploads icon images to object storage.
Remote failures are classified once here into the exception taxonomy;
callers propagate them unmodified.
"""

import logging
import mimetypes
import uuid
from typing import Any, Dict, List, Optional, Type

import httpx

from common.utils.exceptions import (
    APIException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    RemoteCallException,
    ServiceUnavailableException,
    UnauthorizedException,
    ValidationException,
)
from morningcheck.services.persistence.base import PersistenceService

logger = logging.getLogger(__name__)


# Application error codes raised by the stored procedures (message or hint)
APP_ERROR_CODES: Dict[str, Type[APIException]] = {
    "ALREADY_MEMBER": ConflictException,
    "ALREADY_CHECKED_IN": ConflictException,
    "DUPLICATE_INVITATION": ConflictException,
    "INVALID_INVITE_CODE": ConflictException,
    "INVITATION_ALREADY_PROCESSED": ConflictException,
    "JOIN_REQUEST_ALREADY_PROCESSED": ConflictException,
    "SELF_INVITATION": ValidationException,
    "INVALID_EMAIL": ValidationException,
    "PROJECT_NOT_FOUND": NotFoundException,
    "INVITATION_NOT_FOUND": NotFoundException,
    "JOIN_REQUEST_NOT_FOUND": NotFoundException,
    "CHECKIN_NOT_FOUND": NotFoundException,
    "NOT_PROJECT_MEMBER": ForbiddenException,
    "NOT_PROJECT_OWNER": ForbiddenException,
}

# Postgres SQLSTATE codes
SQLSTATE_EXCEPTIONS: Dict[str, Type[APIException]] = {
    "23505": ConflictException,      # unique_violation
    "P0002": NotFoundException,      # no_data_found
    "42501": ForbiddenException,     # insufficient_privilege
    "22023": ValidationException,    # invalid_parameter_value
    "23514": ValidationException,    # check_violation
}


def classify_error(status_code: int, body: Any) -> APIException:
    """
    Map a failed remote response to a typed exception.

    Args:
        status_code: HTTP status of the response
        body: Decoded error body ({code, message, details, hint}) or raw text

    Returns:
        Exception to raise
    """
    if not isinstance(body, dict):
        body = {"message": str(body) if body else ""}

    message = str(body.get("message") or "Remote call failed")
    hint = str(body.get("hint") or "")
    sqlstate = str(body.get("code") or "")
    details = {"status": status_code, "sqlstate": sqlstate or None}

    for app_code, exc_cls in APP_ERROR_CODES.items():
        if app_code in hint or app_code in message:
            return exc_cls(message=message, code=app_code, details=details)

    exc_cls = SQLSTATE_EXCEPTIONS.get(sqlstate)
    if exc_cls is not None:
        return exc_cls(message=message, details=details)

    if status_code == 401:
        return UnauthorizedException(message=message, details=details)
    if status_code == 403:
        return ForbiddenException(message=message, details=details)

    return RemoteCallException(message=message, details=details)


class RpcPersistenceClient(PersistenceService):
    """
    PersistenceService over HTTP.

    Uses one httpx.AsyncClient for all calls. Pass http_client to share a
    client or to inject a transport in tests.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        icon_bucket: str = "mmcheck-project-icons",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Persistence service root URL
            api_key: Anonymous/service API key sent on every request
            timeout: Request timeout in seconds
            icon_bucket: Storage bucket for project icons
            http_client: Optional pre-built client
        """
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._icon_bucket = icon_bucket
        self._access_token: Optional[str] = None
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def set_access_token(self, token: Optional[str]) -> None:
        """Act as the signed-in user. None falls back to the API key."""
        self._access_token = token

    def _headers(self, content_type: str = "application/json") -> Dict[str, str]:
        headers = {"Content-Type": content_type}
        if self._api_key:
            headers["apikey"] = self._api_key
        bearer = self._access_token or self._api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    async def _send(self, method: str, url: str, label: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Persistence request {label} failed: {e}")
            raise ServiceUnavailableException(
                message="Could not reach the persistence service",
                code="NETWORK_ERROR"
            )

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            error = classify_error(response.status_code, body)
            logger.error(f"Persistence call {label} failed: {response.status_code} {error}")
            raise error

        return response

    async def rpc(self, name: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a named remote procedure.

        Args:
            name: Procedure name (e.g. "v1_check_in")
            params: Named parameters; None values are sent as null

        Returns:
            Decoded JSON payload, or None for empty responses

        Raises:
            APIException subclass classified from the remote error
        """
        response = await self._send(
            "POST",
            f"{self._base_url}/rest/v1/rpc/{name}",
            name,
            headers=self._headers(),
            json=params or {},
        )
        logger.info(f"RPC {name} succeeded ({response.status_code})")

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _first(data: Any) -> Optional[Dict[str, Any]]:
        if isinstance(data, list):
            return data[0] if data else None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _list(data: Any) -> List[Dict[str, Any]]:
        return data if isinstance(data, list) else []

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ─────────────────────────────────────────────────────────────────
    # Projects
    # ─────────────────────────────────────────────────────────────────

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
        return await self.rpc("v1_create_project", {
            "p_name": name,
            "p_description": description,
            "p_icon": icon,
            "p_icon_type": icon_type,
            "p_invite_code": invite_code,
            "p_visibility_type": visibility_type,
            "p_created_by": created_by,
        })

    async def update_project(self, project_id: str, updates: Dict[str, Any]) -> Any:
        return await self.rpc("v1_update_project", {
            "p_project_id": project_id,
            "p_name": updates.get("name"),
            "p_description": updates.get("description"),
            "p_icon": updates.get("icon"),
            "p_icon_type": updates.get("iconType"),
        })

    async def soft_delete_project(self, project_id: str) -> None:
        await self.rpc("v1_soft_delete_project", {"p_project_id": project_id})

    async def archive_project(self, project_id: str) -> None:
        await self.rpc("v1_archive_project", {"p_project_id": project_id})

    async def restore_project(self, project_id: str) -> None:
        await self.rpc("v1_restore_project", {"p_project_id": project_id})

    async def get_project_by_id(
        self,
        project_id: str,
        auth_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        data = await self.rpc("v1_get_project_by_id", {
            "p_project_id": project_id,
            "p_auth_id": auth_id,
        })
        return self._first(data)

    async def get_public_projects(self, auth_id: Optional[str] = None) -> List[Dict[str, Any]]:
        data = await self.rpc("v1_get_public_projects", {"p_auth_id": auth_id})
        return self._list(data)

    async def upload_project_icon(
        self,
        content: bytes,
        filename: str,
        user_id: str,
        content_type: Optional[str] = None
    ) -> str:
        if "." not in filename:
            raise ValidationException(
                message="Icon file must have an extension",
                code="INVALID_FILE"
            )

        extension = filename.rsplit(".", 1)[-1].lower()
        path = f"{user_id}/{uuid.uuid4().hex[:13]}.{extension}"
        content_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"

        await self._send(
            "POST",
            f"{self._base_url}/storage/v1/object/{self._icon_bucket}/{path}",
            "upload_project_icon",
            headers=self._headers(content_type),
            content=content,
        )
        logger.info(f"Uploaded project icon {path} for user {user_id}")

        return f"{self._base_url}/storage/v1/object/public/{self._icon_bucket}/{path}"

    # ─────────────────────────────────────────────────────────────────
    # Membership
    # ─────────────────────────────────────────────────────────────────

    async def join_project(self, project_id: str, user_id: str) -> None:
        await self.rpc("v1_join_project", {"p_project_id": project_id, "p_user_id": user_id})

    async def request_to_join(self, project_id: str, user_id: str) -> None:
        await self.rpc("v1_request_to_join", {"p_project_id": project_id, "p_user_id": user_id})

    async def get_join_request(self, project_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        data = await self.rpc("v1_get_join_request", {
            "p_project_id": project_id,
            "p_user_id": user_id,
        })
        return self._first(data)

    async def process_join_request(
        self,
        request_id: str,
        approver_id: str,
        approve: bool,
        reason: Optional[str] = None
    ) -> None:
        await self.rpc("v1_process_join_request", {
            "p_request_id": request_id,
            "p_approver_id": approver_id,
            "p_approve": approve,
            "p_rejection_reason": reason,
        })

    async def leave_project(self, project_id: str, user_id: str) -> None:
        await self.rpc("v1_leave_project", {"p_project_id": project_id, "p_user_id": user_id})

    # ─────────────────────────────────────────────────────────────────
    # Invitations
    # ─────────────────────────────────────────────────────────────────

    async def invite_member(self, project_id: str, inviter_id: str, email: str) -> Any:
        return await self.rpc("v1_invite_member", {
            "p_project_id": project_id,
            "p_inviter_id": inviter_id,
            "p_invitee_email": email,
        })

    async def cancel_invitation(self, invitation_id: str, actor_id: str) -> None:
        await self.rpc("v1_cancel_invitation", {
            "p_invitation_id": invitation_id,
            "p_actor_id": actor_id,
        })

    async def accept_invitation(self, project_id: str, user_id: str, invitation_id: str) -> None:
        await self.rpc("v1_accept_invitation", {
            "p_invitation_id": invitation_id,
            "p_project_id": project_id,
            "p_user_id": user_id,
        })

    async def decline_invitation(self, invitation_id: str, user_id: str) -> None:
        await self.rpc("v1_decline_invitation", {
            "p_invitation_id": invitation_id,
            "p_user_id": user_id,
        })

    async def get_pending_invitations(
        self,
        email: str,
        project_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        data = await self.rpc("v1_get_pending_invitations", {
            "p_email": email,
            "p_project_id": project_id,
        })
        return self._list(data)

    async def get_invitation_history(self, project_id: str) -> List[Dict[str, Any]]:
        data = await self.rpc("v1_get_invitation_history", {"p_project_id": project_id})
        return self._list(data)

    # ─────────────────────────────────────────────────────────────────
    # Check-ins
    # ─────────────────────────────────────────────────────────────────

    async def check_in(
        self,
        project_id: str,
        user_id: str,
        condition: int,
        note: str
    ) -> Any:
        return await self.rpc("v1_check_in", {
            "p_project_id": project_id,
            "p_user_id": user_id,
            "p_condition": condition,
            "p_note": note,
        })

    async def cancel_check_in(self, check_in_id: str) -> None:
        await self.rpc("v1_cancel_check_in", {"p_check_in_id": check_in_id})
