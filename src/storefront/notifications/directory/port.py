"""Admin directory port: who administers a selling group."""

from abc import ABC, abstractmethod


class AdminDirectory(ABC):
    @abstractmethod
    def admins_for(self, selling_group_id: str) -> list[dict]:
        """Return the selling group's admins as dicts with keys: id, email (optional)."""
        ...
