from __future__ import annotations

from datetime import datetime

from sqlalchemy import select

from app.models import PendingUpload
from app.models.base import ensure_utc
from app.repositories.base import Repository


class PendingUploadRepository(Repository[PendingUpload]):
    model = PendingUpload
    label = "Pending upload"

    def expired(self, now: datetime, *, limit: int = 500) -> list[PendingUpload]:
        stmt = (
            select(PendingUpload)
            .where(PendingUpload.expires_at <= ensure_utc(now))
            .order_by(PendingUpload.expires_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars())
