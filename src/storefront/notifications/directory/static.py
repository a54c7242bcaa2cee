"""In-memory admin directory for development and tests."""

from storefront.notifications.directory.port import AdminDirectory


class StaticAdminDirectory(AdminDirectory):
    def __init__(self, admins: dict[str, list[dict]] | None = None):
        self._admins: dict[str, list[dict]] = {key: list(value) for key, value in (admins or {}).items()}

    def register(self, selling_group_id: str, admin_id: str, email: str | None = None) -> None:
        self._admins.setdefault(str(selling_group_id), []).append({"id": admin_id, "email": email})

    def admins_for(self, selling_group_id: str) -> list[dict]:
        return list(self._admins.get(str(selling_group_id), []))
