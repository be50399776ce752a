from fastapi import APIRouter, Depends, HTTPException

from core.state import Role
from voiceinterview.api.dependencies import get_current_account, get_dependency_provider, require_role
from voiceinterview.session.models import UserAccount
from voiceinterview.session.registry import connection_registry

router = APIRouter(prefix="/api")


@router.get("/me")
async def get_me(account: UserAccount = Depends(get_current_account)):
    return account.public_view()


@router.get("/admin/users/{user_id}")
async def get_user_for_admin(user_id: str, _admin: UserAccount = Depends(require_role(Role.ADMIN))):
    account = await get_dependency_provider().get_budget_manager().store.get(user_id)
    if account is None:
        raise HTTPException(status_code=404, detail="User not found")
    payload = account.public_view()
    payload["lastHeartbeatAt"] = account.last_heartbeat_at
    payload["currentSessionStartTime"] = account.current_session_start_time
    payload["activeConnections"] = connection_registry.connections_for_user(user_id)
    return payload
