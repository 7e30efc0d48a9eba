from fastapi import HTTPException, status

ROLES = {"student", "instructor", "admin"}


def _roles(payload: dict) -> set[str]:
    token_roles = payload.get("roles")

    if not isinstance(token_roles, list) or not token_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Roles missing in token",
        )

    return {str(r).lower() for r in token_roles}


def require_role(payload: dict, allowed_roles: list[str]):
    allowed = {r.lower() for r in allowed_roles}

    if _roles(payload).isdisjoint(allowed):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access forbidden for this role",
        )


def require_self_or_admin(payload: dict, subject_id: str, allowed_roles: list[str]):
    """
    Callers with one of ``allowed_roles`` may act only on their own id;
    admins may act on anyone.
    """
    roles = _roles(payload)
    if "admin" in roles:
        return

    require_role(payload, allowed_roles)

    if payload.get("sub") != subject_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot act on behalf of another user",
        )
