import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from shopcore.core.exceptions import ItemNotFound, MemberNotFound, OrderNotFound, ValidationError
from shopcore.core.unit_of_work import UnitOfWork
from shopcore.models.database import Delivery, DeliveryStatus, Item, Member, Order, OrderLine
from shopcore.models.schemas import OrderSearch, OrderView, Pagination
from shopcore.repositories.order_repository import OrderRepository
from shopcore.services.projection import ProjectionEngine

logger = logging.getLogger(__name__)


class OrderService:
    """
    Core order operations.

    Each mutation runs in its own UnitOfWork: either the order, its lines,
    its delivery and every stock change are committed together, or nothing
    is. Stock overselling between concurrent requests is prevented by the
    database, not here: the item row is read FOR UPDATE and its version
    column rejects a lost update at flush time.
    """

    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderRepository(db)
        self.projections = ProjectionEngine(db)

    def create_order(self, member_id: int, item_id: int, quantity: int) -> int:
        """Place an order for ``quantity`` units of one item. Returns the order id."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(f"Quantity must be a positive integer, got {quantity!r}")

        logger.info(f"Processing order for member {member_id}: item {item_id} x {quantity}")

        with UnitOfWork(self.db) as uow:
            member = uow.get(Member, member_id)
            if member is None:
                raise MemberNotFound(f"Member {member_id} not found")

            item = uow.get(Item, item_id, for_update=True)
            if item is None:
                raise ItemNotFound(f"Item {item_id} not found")

            delivery = Delivery(address=member.address, status=DeliveryStatus.PENDING)
            line = OrderLine.create(item, item.price, quantity)
            order = Order.create(member, delivery, line)

            self.orders.save(order)
            uow.flush()  # Get the order ID
            order_id = order.id

        logger.info(f"Order {order_id} processed successfully")
        return order_id

    def cancel_order(self, order_id: int) -> None:
        with UnitOfWork(self.db):
            order = self._get_order(order_id)
            order.cancel()

        logger.info(f"Order {order_id} cancelled")

    def complete_delivery(self, order_id: int) -> None:
        """Mark the order's delivery as completed; the order can no longer be cancelled"""
        with UnitOfWork(self.db):
            order = self._get_order(order_id)
            order.complete_delivery()

        logger.info(f"Delivery for order {order_id} completed")

    def find_order(self, order_id: int) -> Order:
        return self._get_order(order_id)

    def search_orders(self, order_search: Optional[OrderSearch] = None) -> List[Order]:
        return self.orders.search(order_search or OrderSearch())

    def list_orders_projected(self, strategy, pagination: Optional[Pagination] = None) -> List[OrderView]:
        return self.projections.list_orders_projected(strategy, pagination)

    def _get_order(self, order_id: int) -> Order:
        order = self.orders.find_one(order_id)
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found")
        return order
