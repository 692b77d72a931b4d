# tenantgate/domains/auth/routes.py
from fastapi import APIRouter, Depends

from tenantgate.core.storage import AuthorizationStore, get_store
from tenantgate.domains.auth.dependencies import get_current_user_id
from tenantgate.domains.auth.service import SessionService
from tenantgate.domains.organizations.models import SessionState

router = APIRouter(prefix="/session", tags=["Sessions"])


@router.get(
    "",
    response_model=SessionState,
    operation_id="getSessionState",
)
async def get_session_state(
    user_id: str = Depends(get_current_user_id),
    store: AuthorizationStore = Depends(get_store),
) -> SessionState:
    service = SessionService(store)
    return await service.get_session_state(user_id)
