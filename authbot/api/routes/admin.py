"""Role administration over HTTP, for sessions held by admin users."""

import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator

from ...auth.rbac import RoleRegistry
from ...dependencies import get_role_registry, require_admin
from ...models.session import Session
from ...utils.logging import get_logger

logger = get_logger("api.admin")

router = APIRouter(prefix="/authbot/admin", tags=["admin"])

_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")


# --- Request / Response bodies ---

class GrantRoleRequest(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if not _NAME_RE.match(v):
            raise ValueError("role must be a lowercase word")
        return v


class GrantRoleResponse(BaseModel):
    username: str
    role: str
    previous_role: Optional[str] = None


class RevokeRoleResponse(BaseModel):
    username: str
    previous_role: Optional[str] = None
    remaining: int = 0


def _check_username(username: str) -> None:
    if not _NAME_RE.match(username):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid username")


@router.get("/users")
async def list_users(
    role: Optional[str] = Query(default=None),
    _admin: Session = Depends(require_admin),
    registry: RoleRegistry = Depends(get_role_registry),
) -> dict[str, str]:
    """Users and their roles, optionally only members of ``role``."""
    return await registry.list_users(role)


@router.get("/roles")
async def list_roles(
    role: Optional[str] = Query(default=None),
    _admin: Session = Depends(require_admin),
    registry: RoleRegistry = Depends(get_role_registry),
) -> dict[str, int]:
    """Non-empty roles and their member counts."""
    return await registry.list_roles(role)


@router.put("/users/{username}/role", response_model=GrantRoleResponse)
async def grant_role(
    username: str,
    body: GrantRoleRequest,
    admin: Session = Depends(require_admin),
    registry: RoleRegistry = Depends(get_role_registry),
):
    _check_username(username)
    previous = await registry.grant(username, body.role)
    logger.info("role_granted", username=username, role=body.role, by=admin.username)
    return GrantRoleResponse(username=username, role=body.role, previous_role=previous)


@router.delete("/users/{username}/role", response_model=RevokeRoleResponse)
async def revoke_role(
    username: str,
    admin: Session = Depends(require_admin),
    registry: RoleRegistry = Depends(get_role_registry),
):
    _check_username(username)
    result = await registry.revoke(username)
    if result.previous_role is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User has no role")
    logger.info("role_revoked", username=username, role=result.previous_role, by=admin.username)
    return RevokeRoleResponse(
        username=username,
        previous_role=result.previous_role,
        remaining=result.remaining,
    )
