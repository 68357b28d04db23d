"""
Order read projections.

Five interchangeable ways to build the same list of OrderView objects. They
differ only in how many queries they send, how many rows come back, and
whether offset/limit can be applied:

    naive         1 + N + M queries, pages
    fetch_to_one  1 + M queries (member/delivery joined), pages
    fetch_all     1 query, collapsed by identity, cannot page
    batched       2 queries (paged roots + IN query for lines), pages
    flat          2 queries of plain columns, pages
"""
import enum
from contextlib import nullcontext
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from shopcore.core.database import count_queries
from shopcore.core.exceptions import PaginationNotSupported, ValidationError
from shopcore.models.database import Order
from shopcore.models.schemas import Address, OrderLineView, OrderView, Pagination, SimpleOrderView
from shopcore.repositories.order_query_repository import OrderQueryRepository
from shopcore.repositories.order_repository import OrderRepository

logger = logging.getLogger(__name__)


class ProjectionStrategy(str, enum.Enum):
    NAIVE = "naive"
    FETCH_TO_ONE = "fetch_to_one"
    FETCH_ALL = "fetch_all"
    BATCHED = "batched"
    FLAT = "flat"


PAGINATING_STRATEGIES = frozenset({
    ProjectionStrategy.NAIVE,
    ProjectionStrategy.FETCH_TO_ONE,
    ProjectionStrategy.BATCHED,
    ProjectionStrategy.FLAT,
})

SIMPLE_VIEW_STRATEGIES = frozenset({
    ProjectionStrategy.NAIVE,
    ProjectionStrategy.FETCH_TO_ONE,
    ProjectionStrategy.FLAT,
})


def to_address(address) -> Address:
    return Address(city=address.city, street=address.street, zipcode=address.zipcode)


def to_order_view(order: Order) -> OrderView:
    return OrderView(
        order_id=order.id,
        name=order.member.name,
        order_date=order.order_date,
        order_status=order.status,
        address=to_address(order.delivery.address),
        order_lines=[
            OrderLineView(item_name=line.item.name, unit_price=line.unit_price, quantity=line.quantity)
            for line in order.lines
        ],
    )


def to_simple_order_view(order: Order) -> SimpleOrderView:
    return SimpleOrderView(
        order_id=order.id,
        name=order.member.name,
        order_date=order.order_date,
        order_status=order.status,
        address=to_address(order.delivery.address),
    )


class ProjectionEngine:
    """Builds order views with a caller-chosen loading strategy"""

    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderRepository(db)
        self.order_queries = OrderQueryRepository(db)

    @staticmethod
    def choose_strategy(full_graph: bool = True, paginated: bool = False) -> ProjectionStrategy:
        """
        Pick a strategy from what the call site needs.

        Read-only flat views go straight to column projection. Entity graphs
        use the single joined query unless the caller pages, in which case
        the collection has to be batched separately.
        """
        if not full_graph:
            return ProjectionStrategy.FLAT
        if paginated:
            return ProjectionStrategy.BATCHED
        return ProjectionStrategy.FETCH_ALL

    def list_orders(self, full_graph: bool = True, pagination: Optional[Pagination] = None) -> List[OrderView]:
        strategy = self.choose_strategy(full_graph=full_graph, paginated=pagination is not None)
        return self.list_orders_projected(strategy, pagination)

    def list_orders_projected(
        self, strategy, pagination: Optional[Pagination] = None
    ) -> List[OrderView]:
        strategy = _parse_strategy(strategy)
        if pagination is not None and strategy not in PAGINATING_STRATEGIES:
            raise PaginationNotSupported(
                f"Strategy '{strategy.value}' joins a collection and cannot apply offset/limit"
            )

        offset = pagination.offset if pagination is not None else None
        limit = pagination.limit if pagination is not None else None

        # Views are built inside the block: lazy strategies query while converting
        with self._query_counter() as queries:
            if strategy is ProjectionStrategy.FLAT:
                views = self.order_queries.find_order_views(offset, limit)
            else:
                views = [to_order_view(order) for order in self._load_orders(strategy, offset, limit)]

        if queries is not None:
            logger.debug(
                f"Projected {len(views)} orders with strategy {strategy.value} "
                f"in {queries.count} queries"
            )
        return views

    def list_simple_orders(self, strategy) -> List[SimpleOrderView]:
        """Order views without lines; only to-one relations are involved"""
        strategy = _parse_strategy(strategy)
        if strategy not in SIMPLE_VIEW_STRATEGIES:
            raise ValidationError(f"Strategy '{strategy.value}' is not available for simple order views")

        with self._query_counter() as queries:
            if strategy is ProjectionStrategy.FLAT:
                views = self.order_queries.find_simple_order_views()
            elif strategy is ProjectionStrategy.FETCH_TO_ONE:
                views = [to_simple_order_view(o) for o in self.orders.find_all_with_member_delivery()]
            else:
                views = [to_simple_order_view(o) for o in self.orders.find_all_lazy()]

        if queries is not None:
            logger.debug(
                f"Projected {len(views)} simple orders with strategy {strategy.value} "
                f"in {queries.count} queries"
            )
        return views

    def _query_counter(self):
        # Engine listener only while DEBUG is logged
        if logger.isEnabledFor(logging.DEBUG):
            return count_queries(self.db.get_bind())
        return nullcontext()

    def _load_orders(self, strategy: ProjectionStrategy, offset, limit) -> List[Order]:
        if strategy is ProjectionStrategy.NAIVE:
            return self.orders.find_all_lazy(offset, limit)
        if strategy is ProjectionStrategy.FETCH_TO_ONE:
            return self.orders.find_all_with_member_delivery(offset, limit)
        if strategy is ProjectionStrategy.FETCH_ALL:
            return self.orders.find_all_with_lines()
        return self.orders.find_all_with_batched_lines(offset, limit)


def _parse_strategy(strategy) -> ProjectionStrategy:
    try:
        return ProjectionStrategy(strategy)
    except ValueError:
        raise ValidationError(f"Unknown projection strategy: {strategy!r}") from None
