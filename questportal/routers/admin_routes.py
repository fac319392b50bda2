import logging
from typing import List

from fastapi import APIRouter, Depends

from questportal.auth.credentials import ensure_can_assign_role, require_roles
from questportal.core.errors import NotFoundError
from questportal.dependencies import get_ledger, get_vip
from questportal.schemas.user_schema import Role, RoleUpdate, UserRecord, UserResponse, VIPUpdate
from questportal.services.ledger import UserLedger
from questportal.services.vip import VIPService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])

admin_only = require_roles(Role.admin, Role.owner)


@router.get("/users", response_model=List[UserResponse])
def list_users(ledger: UserLedger = Depends(get_ledger), actor: UserRecord = Depends(admin_only)):
    return [UserResponse.model_validate(user) for user in ledger.list_all()]


@router.get("/users/{username}", response_model=UserResponse)
def get_user(username: str, ledger: UserLedger = Depends(get_ledger), actor: UserRecord = Depends(admin_only)):
    user = ledger.get_by_username(username)
    if user is None:
        raise NotFoundError()
    return UserResponse.model_validate(user)


@router.patch("/users/{username}/role", response_model=UserResponse)
def update_role(
    username: str,
    payload: RoleUpdate,
    ledger: UserLedger = Depends(get_ledger),
    actor: UserRecord = Depends(admin_only),
):
    with ledger.locked():
        target = ledger.get_by_username(username)
        if target is None:
            raise NotFoundError()
        ensure_can_assign_role(actor, target, payload.role)
        updated = ledger.update(username, role=payload.role.value)

    logger.info("%s changed role of %s from %s to %s", actor.username, username, target.role, updated.role)
    return UserResponse.model_validate(updated)


@router.patch("/users/{username}/vip", response_model=UserResponse)
def update_vip(
    username: str,
    payload: VIPUpdate,
    vip: VIPService = Depends(get_vip),
    actor: UserRecord = Depends(admin_only),
):
    user = vip.set_status(username, payload.is_vip, payload.duration_days)
    logger.info("%s set VIP of %s to %s", actor.username, username, payload.is_vip)
    return UserResponse.model_validate(user)
