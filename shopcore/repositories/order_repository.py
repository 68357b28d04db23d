"""
Order entity queries.

Loader options are always spelled out per query so each read path states
exactly which relations it fetches and how.
"""
from typing import List, Optional

from sqlalchemy import and_, select
from sqlalchemy.orm import Session, contains_eager, joinedload, lazyload, selectinload

from shopcore.core.config import ORDER_SEARCH_LIMIT
from shopcore.models.database import Member, Order, OrderLine
from shopcore.models.schemas import OrderSearch


class OrderRepository:

    def __init__(self, db: Session):
        self.db = db

    def save(self, order: Order) -> None:
        self.db.add(order)

    def find_one(self, order_id: int) -> Optional[Order]:
        """Single order with member, delivery and lines (with items) loaded"""
        stmt = (
            select(Order)
            .options(
                joinedload(Order.member),
                joinedload(Order.delivery),
                selectinload(Order.lines).joinedload(OrderLine.item),
            )
            .where(Order.id == order_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def search(self, order_search: OrderSearch) -> List[Order]:
        """
        Orders matching every given filter, oldest first, at most
        ORDER_SEARCH_LIMIT of them.

        ``status`` is an exact match; ``member_name`` is a substring match,
        compared through ``lower()`` so case is ignored on every backend, and
        is ignored when blank. Member and delivery come back in the same query.
        """
        stmt = (
            select(Order)
            .join(Order.member)
            .options(contains_eager(Order.member), joinedload(Order.delivery))
        )

        criteria = []
        if order_search.status is not None:
            criteria.append(Order.status == order_search.status)
        if order_search.member_name and order_search.member_name.strip():
            criteria.append(Member.name.icontains(order_search.member_name, autoescape=True))
        if criteria:
            stmt = stmt.where(and_(*criteria))

        stmt = stmt.order_by(Order.id).limit(ORDER_SEARCH_LIMIT)
        return list(self.db.execute(stmt).scalars().all())

    def find_all_lazy(self, offset: Optional[int] = None, limit: Optional[int] = None) -> List[Order]:
        """Roots only; every relation is fetched on first access (1 + N + M)"""
        stmt = (
            select(Order)
            .options(
                lazyload(Order.member),
                lazyload(Order.delivery),
                lazyload(Order.lines).lazyload(OrderLine.item),
            )
            .order_by(Order.id)
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_all_with_member_delivery(
        self, offset: Optional[int] = None, limit: Optional[int] = None
    ) -> List[Order]:
        """To-one relations joined in; lines and items still load on access"""
        stmt = (
            select(Order)
            .options(
                joinedload(Order.member),
                joinedload(Order.delivery),
                lazyload(Order.lines).lazyload(OrderLine.item),
            )
            .order_by(Order.id)
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_all_with_lines(self) -> List[Order]:
        """
        Whole graph in one joined query. The to-many join repeats each order
        once per line, so rows are collapsed by identity and this query
        cannot be paged.
        """
        stmt = (
            select(Order)
            .options(
                joinedload(Order.member),
                joinedload(Order.delivery),
                joinedload(Order.lines).joinedload(OrderLine.item),
            )
            .order_by(Order.id)
        )
        return list(self.db.execute(stmt).unique().scalars().all())

    def find_all_with_batched_lines(
        self, offset: Optional[int] = None, limit: Optional[int] = None
    ) -> List[Order]:
        """
        Page over orders joined with their to-one relations, then load the
        lines (with items) of exactly those orders in one IN query.
        """
        stmt = (
            select(Order)
            .options(
                joinedload(Order.member),
                joinedload(Order.delivery),
                selectinload(Order.lines).joinedload(OrderLine.item),
            )
            .order_by(Order.id)
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())
