"""
Column-level order queries.

Selects only the columns the views need instead of whole entities, which
keeps the transferred payload small. The price is that these queries are
shaped for the views and cannot be reused for writes.
"""
from collections import defaultdict
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from shopcore.models.database import Delivery, Item, Member, Order, OrderLine
from shopcore.models.schemas import Address, OrderLineView, OrderView, SimpleOrderView


class OrderQueryRepository:

    def __init__(self, db: Session):
        self.db = db

    def _order_rows(self, offset: Optional[int], limit: Optional[int]):
        stmt = (
            select(
                Order.id.label("order_id"),
                Member.name.label("name"),
                Order.order_date,
                Order.status.label("order_status"),
                Delivery.city,
                Delivery.street,
                Delivery.zipcode,
            )
            .join(Order.member)
            .join(Order.delivery)
            .order_by(Order.id)
            .offset(offset)
            .limit(limit)
        )
        return self.db.execute(stmt).all()

    def find_order_line_views(self, order_ids: List[int]) -> dict:
        """Lines of all given orders in one query, keyed by order id"""
        stmt = (
            select(
                OrderLine.order_id,
                Item.name.label("item_name"),
                OrderLine.unit_price,
                OrderLine.quantity,
            )
            .join(OrderLine.item)
            .where(OrderLine.order_id.in_(order_ids))
            .order_by(OrderLine.id)
        )

        lines_by_order = defaultdict(list)
        for row in self.db.execute(stmt):
            lines_by_order[row.order_id].append(
                OrderLineView(item_name=row.item_name, unit_price=row.unit_price, quantity=row.quantity)
            )
        return lines_by_order

    def find_order_views(self, offset: Optional[int] = None, limit: Optional[int] = None) -> List[OrderView]:
        """
        Root columns in one query, then line columns for exactly those order
        ids in a second one, merged through an id-keyed lookup.
        """
        rows = self._order_rows(offset, limit)
        if not rows:
            return []

        lines_by_order = self.find_order_line_views([row.order_id for row in rows])
        return [
            OrderView(
                order_id=row.order_id,
                name=row.name,
                order_date=row.order_date,
                order_status=row.order_status,
                address=Address(city=row.city, street=row.street, zipcode=row.zipcode),
                order_lines=lines_by_order.get(row.order_id, []),
            )
            for row in rows
        ]

    def find_simple_order_views(self) -> List[SimpleOrderView]:
        return [
            SimpleOrderView(
                order_id=row.order_id,
                name=row.name,
                order_date=row.order_date,
                order_status=row.order_status,
                address=Address(city=row.city, street=row.street, zipcode=row.zipcode),
            )
            for row in self._order_rows(None, None)
        ]
