from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Annotated

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fleetcare.maintenance.models import ActorRole


class Role(str, Enum):
    """Dashboard roles, most privileged first.

    A higher role satisfies every check for a lower one: admins may do what
    operators do, operators what clients do.
    """

    ADMIN = "admin"
    OPERATOR = "operator"
    CLIENT = "client"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {role: rank for rank, role in enumerate(reversed(Role))}


@dataclass(frozen=True, slots=True)
class User:
    username: str
    roles: tuple[Role, ...]

    def has_role(self, role: Role) -> bool:
        return any(held.rank >= role.rank for held in self.roles)

    @property
    def actor_role(self) -> ActorRole:
        """Most privileged held role, as recorded on audit events."""

        if not self.roles:
            return ActorRole.CLIENT
        return ActorRole(max(self.roles, key=lambda role: role.rank).value)


ANONYMOUS = User("anonymous", (Role.CLIENT,))

bearer_scheme = HTTPBearer(auto_error=False)

# Static service tokens; real sign-in happens at the dashboard gateway.
_TOKEN_USERS: dict[str, User] = {
    f"{role.value}-token": User(role.value, (role,))
    for role in Role
}


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)]
) -> User:
    """Resolve the bearer token; callers without one browse as clients."""

    if credentials is None:
        return ANONYMOUS
    user = _TOKEN_USERS.get(credentials.credentials)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return user


def role_required(role: Role) -> Callable[[User], User]:
    """Dependency factory rejecting users below ``role`` with 403."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not user.has_role(role):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
