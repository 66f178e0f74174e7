from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError
from app.models.base import Base

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


class Repository(Generic[ModelT]):
    """Common persistence operations for one mapped class."""

    model: type[ModelT]
    label: str = "Record"

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, entity_id: str) -> ModelT:
        instance = self.db.get(self.model, entity_id)
        if instance is None:
            raise NotFoundError(f"{self.label} not found", details={"id": entity_id})
        return instance

    def find_by_id(self, entity_id: str) -> ModelT | None:
        return self.db.get(self.model, entity_id)

    def add(self, instance: ModelT, *, conflict_message: str | None = None) -> ModelT:
        self.db.add(instance)
        self.flush(conflict_message)
        return instance

    def update(self, instance: ModelT, **changes: Any) -> ModelT:
        for key, value in changes.items():
            setattr(instance, key, value)
        self.flush()
        return instance

    def delete(self, instance: ModelT, *, conflict_message: str | None = None) -> None:
        self.db.delete(instance)
        self.flush(conflict_message)

    def flush(self, conflict_message: str | None = None) -> None:
        """Flush pending changes, turning constraint violations into conflicts."""

        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            logger.info(
                "integrity violation",
                extra={"model": self.model.__name__, "error": str(exc.orig)},
            )
            raise ConflictError(
                conflict_message or f"{self.label} conflicts with existing data"
            ) from exc
