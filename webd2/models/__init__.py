"""Bundled entities."""

from webd2.core.registry import EntityRegistry
from webd2.models.user import User
from webd2.models.user_account import UserAccount
from webd2.models.user_group import UserGroup

__all__ = ["User", "UserAccount", "UserGroup", "register_models"]


def register_models(registry: EntityRegistry) -> EntityRegistry:
    """Register the bundled entities and check their links."""
    registry.register("userGroup", UserGroup)
    registry.register("user", User)
    registry.register("userAccount", UserAccount)
    registry.validate()
    return registry
