"""Repository modules - Data access layer"""
from typing import NamedTuple, Optional

from ..config.settings import settings
from .base import (
    TemplateStore, ProcessRepository, AuditRepository,
    NotificationRepository, UserRepository
)
from .memory import (
    MemoryStore, InMemoryTemplateRepository, InMemoryProcessRepository,
    InMemoryAuditRepository, InMemoryNotificationRepository, InMemoryUserRepository
)


class Repositories(NamedTuple):
    """One repository per collection, all on the same backend"""
    templates: TemplateStore
    processes: ProcessRepository
    audit: AuditRepository
    notifications: NotificationRepository
    users: UserRepository


_memory_repositories: Optional[Repositories] = None


def build_memory_repositories(store: Optional[MemoryStore] = None) -> Repositories:
    """Repositories sharing one in-memory store"""
    store = store or MemoryStore()
    return Repositories(
        templates=InMemoryTemplateRepository(store),
        processes=InMemoryProcessRepository(store),
        audit=InMemoryAuditRepository(store),
        notifications=InMemoryNotificationRepository(store),
        users=InMemoryUserRepository(store),
    )


def build_mongo_repositories() -> Repositories:
    """Repositories over the configured MongoDB database"""
    from .template_repo import TemplateRepository
    from .process_repo import ProcessRepository as MongoProcessRepository
    from .audit_repo import AuditRepository as MongoAuditRepository
    from .notification_repo import NotificationRepository as MongoNotificationRepository
    from .user_repo import UserRepository as MongoUserRepository

    templates = TemplateRepository()
    return Repositories(
        templates=templates,
        processes=MongoProcessRepository(template_repo=templates),
        audit=MongoAuditRepository(),
        notifications=MongoNotificationRepository(),
        users=MongoUserRepository(),
    )


def get_repositories() -> Repositories:
    """Repositories for the configured storage backend"""
    global _memory_repositories
    if settings.uses_memory_storage:
        if _memory_repositories is None:
            _memory_repositories = build_memory_repositories()
        return _memory_repositories
    return build_mongo_repositories()


def reset_repositories() -> None:
    """Drop the in-memory backend so the next call starts empty"""
    global _memory_repositories
    _memory_repositories = None


def storage_health_check() -> dict:
    """Health of the configured storage backend"""
    if settings.uses_memory_storage:
        return {"status": "healthy", "backend": "memory"}
    from .mongo_client import health_check
    return health_check()


__all__ = [
    "Repositories",
    "get_repositories",
    "reset_repositories",
    "build_memory_repositories",
    "build_mongo_repositories",
    "storage_health_check",
]
