"""Actor identity and ownership checks."""

from dataclasses import dataclass

from ..errors import NotAuthenticatedError, NotAuthorizedError
from ..models.registry import Skill


@dataclass(frozen=True)
class Actor:
    """The resolved caller of a registry operation."""

    id: str
    handle: str | None = None


def require_actor(actor: Actor | None) -> Actor:
    """Return the actor or raise NotAuthenticatedError."""
    if actor is None or not actor.id:
        raise NotAuthenticatedError("Not authenticated")
    return actor


def require_owner(actor: Actor, skill: Skill) -> None:
    """Raise NotAuthorizedError unless the actor owns the skill."""
    if skill.owner_id != actor.id:
        raise NotAuthorizedError("Not authorized to modify this skill")
