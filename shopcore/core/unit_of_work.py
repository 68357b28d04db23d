"""
Unit of Work for order mutations.

Every create/cancel runs inside exactly one unit of work: the whole change set
is committed together or rolled back together.
"""
import logging

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from shopcore.core.exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    Transaction boundary around a SQLAlchemy session.

    Usage:
        with UnitOfWork(db) as uow:
            order = Order.create(member, delivery, line)
            uow.add(order)

    Leaving the block normally commits. Any exception rolls back and
    propagates. The session identity map is the per-transaction entity
    cache: ``uow.get`` only queries when the row is not loaded yet.
    """

    def __init__(self, session: Session):
        self.session = session

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            logger.error(f"Unit of work failed: {exc_val}")
            self.rollback()
            if issubclass(exc_type, StaleDataError):
                raise ConcurrencyConflictError(
                    "Row was modified by another transaction"
                ) from exc_val
            return False

        self.commit()
        return False

    def get(self, model, ident, for_update: bool = False):
        return self.session.get(model, ident, with_for_update=True if for_update else None)

    def add(self, instance):
        self.session.add(instance)

    def flush(self):
        self.session.flush()

    def commit(self):
        try:
            self.session.commit()
        except StaleDataError as e:
            self.rollback()
            raise ConcurrencyConflictError(
                "Row was modified by another transaction"
            ) from e
        except Exception:
            self.rollback()
            raise

    def rollback(self):
        self.session.rollback()
        logger.warning("Transaction rolled back")
