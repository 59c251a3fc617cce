"""Collaborators consumed by the coordinators: item catalog and audit sink.

Both receive the caller's transactional session so their reads and writes
belong to the same unit of work as the order mutation they accompany.
"""

from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from closetshare.services.orders.models import AuditLog, WardrobeItem


class ItemCatalog(Protocol):
    def find_active_item(self, db: Session, item_id: int) -> WardrobeItem | None: ...


class AuditSink(Protocol):
    def log(
        self,
        db: Session,
        entity_type: str,
        entity_id: int,
        action: str,
        actor_id: int | None = None,
        old_value: Any = None,
        new_value: Any = None,
    ) -> None: ...


class SqlItemCatalog:
    """Looks items up in the `wardrobe_items` table, hiding soft-deleted rows."""

    def find_active_item(self, db: Session, item_id: int) -> WardrobeItem | None:
        return db.execute(
            select(WardrobeItem).where(WardrobeItem.id == item_id, WardrobeItem.deleted_at.is_(None))
        ).scalar_one_or_none()


class SqlAuditSink:
    """Stages one `AuditLog` row in the caller's session; it commits with the unit."""

    def log(
        self,
        db: Session,
        entity_type: str,
        entity_id: int,
        action: str,
        actor_id: int | None = None,
        old_value: Any = None,
        new_value: Any = None,
    ) -> None:
        db.add(
            AuditLog(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                actor_id=actor_id,
                old_value=old_value,
                new_value=new_value,
            )
        )


def load_audit_trail(db: Session, entity_type: str, entity_id: int) -> list[AuditLog]:
    """Audit rows for one entity, newest first."""

    return list(
        db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.id.desc())
        ).scalars()
    )
