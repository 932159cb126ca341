"""
Storage quota accounting for library entities.
"""

import threading
from typing import Dict, Optional

from ...shared import get_logger, get_settings
from ...shared.infrastructure.database import RecordStore
from ...shared.models import User
from .models import StorageUsage
from .repository import LibraryRepository


class StorageQuotaService:
    """
    Tracks how many library entities each user owns against their quota.

    ``check_storage_usage`` always counts live rows. ``sync_storage_usage``
    recounts and records the result as the user's last known usage.
    """

    def __init__(self, store: RecordStore, default_quota: Optional[int] = None):
        self.logger = get_logger(__name__)
        self.library = LibraryRepository(store)
        if default_quota is None:
            default_quota = get_settings().default_storage_quota
        self.default_quota = default_quota
        self._lock = threading.RLock()
        self._quotas: Dict[str, int] = {}
        self._synced: Dict[str, StorageUsage] = {}

    def set_quota(self, user: User, total: int) -> None:
        with self._lock:
            self._quotas[user.uid] = total

    def quota_for(self, user: User) -> int:
        with self._lock:
            return self._quotas.get(user.uid, self.default_quota)

    async def check_storage_usage(self, user: User) -> StorageUsage:
        used = await self.library.count_for_user(user.uid)
        return StorageUsage(uid=user.uid, used=used, total=self.quota_for(user))

    async def sync_storage_usage(self, user: User) -> StorageUsage:
        usage = await self.check_storage_usage(user)
        with self._lock:
            self._synced[user.uid] = usage
        self.logger.debug(f"Synced storage usage for {user.uid}: {usage.used}/{usage.total}")
        return usage

    def last_synced(self, user: User) -> Optional[StorageUsage]:
        with self._lock:
            return self._synced.get(user.uid)
