"""Admin directory registry."""

from storefront.notifications.directory.port import AdminDirectory
from storefront.notifications.directory.static import StaticAdminDirectory

_directory: AdminDirectory | None = None


def get_admin_directory() -> AdminDirectory:
    global _directory
    if _directory is None:
        _directory = StaticAdminDirectory()
    return _directory


def set_admin_directory(directory: AdminDirectory) -> None:
    global _directory
    _directory = directory


def reset_admin_directory() -> None:
    global _directory
    _directory = None
