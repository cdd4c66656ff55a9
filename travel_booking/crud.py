import json
import logging
from typing import Any, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import models
from .config import settings
from .errors import StorageError
from .search import AnyOf, Condition, EQ, GTE, LTE, ICONTAINS, CONTAINS_ALL

logger = logging.getLogger("travel_booking")


def compile_clause(model, clause):
    """Translate a storage-agnostic clause into a SQLAlchemy expression."""
    if isinstance(clause, AnyOf):
        return or_(*(compile_clause(model, c) for c in clause.clauses))

    column = getattr(model, clause.field)
    if clause.op == EQ:
        return column == clause.value
    if clause.op == GTE:
        return column >= clause.value
    if clause.op == LTE:
        return column <= clause.value
    if clause.op == ICONTAINS:
        return column.icontains(clause.value, autoescape=True)
    if clause.op == CONTAINS_ALL:
        # Every word must appear somewhere in the field, in any order.
        return and_(*(column.icontains(word, autoescape=True) for word in clause.value))
    raise ValueError(f"Unsupported operator: {clause.op}")


class SQLCollection:
    """
    Document-collection view of one table.

    Each call opens its own short-lived session, so calls are safe to run
    concurrently from worker threads.  Returned objects are detached and
    fully loaded.  Database failures surface as ``StorageError``.
    """

    def __init__(self, model, session_factory: sessionmaker):
        self.model = model
        self.session_factory = session_factory

    def _query(self, db: Session, criteria: list):
        query = db.query(self.model)
        if criteria:
            query = query.filter(*(compile_clause(self.model, c) for c in criteria))
        return query

    def find(self, criteria: list, sort: tuple, skip: int, limit: int) -> list:
        sort_by, sort_order = sort
        column = getattr(self.model, sort_by)
        order = column.asc() if sort_order == "asc" else column.desc()
        try:
            with self.session_factory() as db:
                return self._query(db, criteria).order_by(order).offset(skip).limit(limit).all()
        except (SQLAlchemyError, OverflowError) as e:
            logger.error(f"find on {self.model.__tablename__} failed: {e}")
            raise StorageError(f"Error fetching {self.model.__tablename__}") from e

    def count(self, criteria: list) -> int:
        try:
            with self.session_factory() as db:
                return self._query(db, criteria).count()
        except (SQLAlchemyError, OverflowError) as e:
            logger.error(f"count on {self.model.__tablename__} failed: {e}")
            raise StorageError(f"Error counting {self.model.__tablename__}") from e

    def find_by_id(self, id: int) -> Optional[Any]:
        try:
            with self.session_factory() as db:
                return db.get(self.model, id)
        except (SQLAlchemyError, OverflowError) as e:
            logger.error(f"find_by_id({id}) on {self.model.__tablename__} failed: {e}")
            raise StorageError(f"Error fetching {self.model.__tablename__} {id}") from e

    def create(self, doc: dict) -> Any:
        try:
            with self.session_factory() as db:
                obj = self.model(**doc)
                db.add(obj)
                db.commit()
                db.refresh(obj)
                return obj
        except (SQLAlchemyError, OverflowError) as e:
            logger.error(f"create on {self.model.__tablename__} failed: {e}")
            raise StorageError(f"Error creating {self.model.__tablename__}") from e

    def update_by_id(self, id: int, partial: dict) -> Optional[Any]:
        """Apply ``partial`` in a single UPDATE and return the refreshed row."""
        try:
            with self.session_factory() as db:
                updated = db.query(self.model).filter(self.model.id == id).update(
                    partial, synchronize_session=False
                )
                db.commit()
                if not updated:
                    return None
                return db.get(self.model, id)
        except (SQLAlchemyError, OverflowError) as e:
            logger.error(f"update_by_id({id}) on {self.model.__tablename__} failed: {e}")
            raise StorageError(f"Error updating {self.model.__tablename__} {id}") from e

    def delete_by_id(self, id: int) -> bool:
        try:
            with self.session_factory() as db:
                deleted = db.query(self.model).filter(self.model.id == id).delete(synchronize_session=False)
                db.commit()
                return deleted > 0
        except (SQLAlchemyError, OverflowError) as e:
            logger.error(f"delete_by_id({id}) on {self.model.__tablename__} failed: {e}")
            raise StorageError(f"Error deleting {self.model.__tablename__} {id}") from e


# --- Outbox ---

def create_booking_event_in_outbox(session_factory: sessionmaker, booking: models.Booking, event: str) -> None:
    """
    Records a booking lifecycle event for the outbox poller to publish.
    """
    payload = {
        "booking_id": booking.id,
        "user_id": booking.user_id,
        "event": event,
        "status": booking.status.value,
        "payment_status": booking.payment_status.value,
    }

    with session_factory() as db:
        db.add(models.OutboxEvent(
            topic=settings.KAFKA_BOOKING_TOPIC,
            payload=json.dumps(payload),
            status="PENDING",
        ))
        db.commit()
