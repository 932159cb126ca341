"""
Credit usage lookups.

Credits are computed elsewhere; this service only sums what was recorded.
"""

import uuid

from ...shared.infrastructure.database import RecordStore
from ...shared.models import User
from .models import CreditUsage
from .repository import CreditUsageRepository


class CreditService:
    def __init__(self, store: RecordStore):
        self.usages = CreditUsageRepository(store)

    async def record_usage(self, user: User, result_id: str, amount: int) -> CreditUsage:
        usage = CreditUsage(
            usage_id=f"cu-{uuid.uuid4().hex[:24]}",
            uid=user.uid,
            result_id=result_id,
            amount=amount,
        )
        return await self.usages.create(usage)

    async def count_result_credit_usage(self, user: User, result_id: str) -> int:
        usages = await self.usages.find_many(uid=user.uid, result_id=result_id)
        return sum(usage.amount for usage in usages)
