import json
from dataclasses import dataclass, field

from fastapi import HTTPException, Request, status


@dataclass
class Requester:
    sub: str
    roles: list[str] = field(default_factory=list)

    @property
    def role(self) -> str | None:
        # role used for ownership checks on a single reservation
        for r in ("provider", "customer", "admin"):
            if r in self.roles:
                return r
        return None


def get_requester(request: Request) -> Requester:
    """Identity forwarded by the gateway as X-User-Sub / X-User-Roles (JSON list)."""
    sub = request.headers.get("X-User-Sub")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )

    raw_roles = request.headers.get("X-User-Roles") or "[]"
    try:
        roles = json.loads(raw_roles)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed roles header",
        )
    if not isinstance(roles, list):
        roles = []

    request.state.user_sub = sub
    request.state.user_roles = roles
    return Requester(sub=sub, roles=[str(r).lower() for r in roles])


def require_role(requester: Requester, allowed_roles: list[str]):
    if not requester.roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Roles missing in token",
        )

    allowed = {r.lower() for r in allowed_roles}
    if allowed.isdisjoint(requester.roles):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access forbidden for this role",
        )
