import logging
import pytest
from shopcore.core.database import count_queries
from shopcore.core.exceptions import PaginationNotSupported, ValidationError
from shopcore.core.unit_of_work import UnitOfWork
from shopcore.models.database import Delivery, DeliveryStatus, Item, Member, Order, OrderLine, OrderStatus
from shopcore.models.schemas import Pagination
from shopcore.services import projection
from shopcore.services.order_service import OrderService
from shopcore.services.projection import ProjectionEngine, ProjectionStrategy

ORDER_COUNT = 3

ALL_STRATEGIES = list(ProjectionStrategy)
PAGING_STRATEGIES = [s for s in ProjectionStrategy if s is not ProjectionStrategy.FETCH_ALL]


@pytest.fixture
def stored_orders(test_db, order_factory):
    """Three single-line orders plus one two-line order, one of them cancelled"""
    order_ids = order_factory(ORDER_COUNT)

    with UnitOfWork(test_db) as uow:
        member = uow.get(Member, 1)
        first_item = uow.get(Item, 1)
        second_item = uow.get(Item, 2)
        order = Order.create(
            member,
            Delivery(address=member.address, status=DeliveryStatus.PENDING),
            OrderLine.create(first_item, first_item.price, 1),
            OrderLine.create(second_item, second_item.price, 3),
        )
        uow.add(order)
        uow.flush()
        order_ids.append(order.id)

    OrderService(test_db).cancel_order(order_ids[1])
    return order_ids


@pytest.fixture
def engine_for(session_factory):
    """A projection engine on a fresh session, so nothing is cached yet"""
    sessions = []

    def make():
        db = session_factory()
        sessions.append(db)
        return ProjectionEngine(db)

    yield make
    for db in sessions:
        db.close()


def summary(views):
    return [
        (v.order_id, v.name, v.order_status, [(l.item_name, l.unit_price, l.quantity) for l in v.order_lines])
        for v in views
    ]


class TestProjectionOutput:

    def test_expected_content(self, stored_orders, engine_for):
        views = engine_for().list_orders_projected(ProjectionStrategy.BATCHED)

        assert [v.order_id for v in views] == stored_orders
        assert views[0].name == "member0"
        assert views[0].address.city == "City0"
        assert views[1].order_status == OrderStatus.CANCELLED
        assert [(l.item_name, l.quantity) for l in views[3].order_lines] == [("Item 0", 1), ("Item 1", 3)]

    def test_all_strategies_agree(self, stored_orders, engine_for):
        """Every strategy returns the same views for the same stored data"""
        results = {
            strategy: engine_for().list_orders_projected(strategy)
            for strategy in ALL_STRATEGIES
        }

        expected = results[ProjectionStrategy.NAIVE]
        assert len(expected) == ORDER_COUNT + 1
        for strategy, views in results.items():
            assert views == expected, strategy
            assert summary(views) == summary(expected)

    def test_strategy_by_name(self, stored_orders, engine_for):
        views = engine_for().list_orders_projected("flat")
        assert len(views) == ORDER_COUNT + 1

    def test_unknown_strategy(self, engine_for):
        with pytest.raises(ValidationError, match="Unknown projection strategy"):
            engine_for().list_orders_projected("eager_everything")

    def test_empty_store(self, engine_for):
        for strategy in ALL_STRATEGIES:
            assert engine_for().list_orders_projected(strategy) == []


class TestProjectionQueryCounts:
    """Query counts per strategy over N single-line orders with distinct members and items"""

    @pytest.fixture
    def single_line_orders(self, order_factory):
        return order_factory(ORDER_COUNT)

    def _count(self, engine_for, test_engine, strategy, pagination=None):
        engine = engine_for()
        with count_queries(test_engine) as queries:
            views = engine.list_orders_projected(strategy, pagination)
        return views, queries.count

    def test_naive_fans_out_per_relation(self, single_line_orders, engine_for, test_engine):
        # root + member, delivery, lines and item for every order
        _, count = self._count(engine_for, test_engine, ProjectionStrategy.NAIVE)
        assert count == 1 + 4 * ORDER_COUNT

    def test_fetch_to_one_only_fans_out_for_lines(self, single_line_orders, engine_for, test_engine):
        # root with member/delivery joined + lines and item for every order
        _, count = self._count(engine_for, test_engine, ProjectionStrategy.FETCH_TO_ONE)
        assert count == 1 + 2 * ORDER_COUNT

    def test_fetch_all_is_one_query(self, single_line_orders, engine_for, test_engine):
        _, count = self._count(engine_for, test_engine, ProjectionStrategy.FETCH_ALL)
        assert count == 1

    @pytest.mark.parametrize("strategy", [ProjectionStrategy.BATCHED, ProjectionStrategy.FLAT])
    def test_batched_strategies_use_two_queries(self, single_line_orders, engine_for, test_engine, strategy):
        _, count = self._count(engine_for, test_engine, strategy)
        assert count == 2

        _, paged_count = self._count(engine_for, test_engine, strategy, Pagination(offset=1, limit=1))
        assert paged_count == 2

    def test_fetch_all_collapses_joined_rows(self, stored_orders, engine_for):
        """The two-line order comes back once, not once per line"""
        views = engine_for().list_orders_projected(ProjectionStrategy.FETCH_ALL)
        assert [v.order_id for v in views] == stored_orders


class TestProjectionPagination:

    def test_fetch_all_rejects_pagination(self, stored_orders, engine_for):
        with pytest.raises(PaginationNotSupported):
            engine_for().list_orders_projected(ProjectionStrategy.FETCH_ALL, Pagination(offset=0, limit=2))

    @pytest.mark.parametrize("strategy", PAGING_STRATEGIES)
    def test_pages_concatenate_to_full_result(self, stored_orders, engine_for, strategy):
        full = engine_for().list_orders_projected(strategy)

        pages = []
        offset = 0
        while True:
            page = engine_for().list_orders_projected(strategy, Pagination(offset=offset, limit=3))
            if not page:
                break
            assert len(page) <= 3
            pages.extend(page)
            offset += 3

        assert pages == full

    def test_page_keeps_all_lines_of_multi_line_order(self, stored_orders, engine_for):
        """Paging applies to orders, never to their lines"""
        for strategy in (ProjectionStrategy.BATCHED, ProjectionStrategy.FLAT):
            page = engine_for().list_orders_projected(strategy, Pagination(offset=3, limit=1))
            assert [v.order_id for v in page] == [stored_orders[3]]
            assert len(page[0].order_lines) == 2

    def test_offset_past_end(self, stored_orders, engine_for):
        page = engine_for().list_orders_projected(ProjectionStrategy.FLAT, Pagination(offset=50, limit=10))
        assert page == []


class TestStrategySelection:

    @pytest.mark.parametrize("full_graph, paginated, expected", [
        (True, False, ProjectionStrategy.FETCH_ALL),
        (True, True, ProjectionStrategy.BATCHED),
        (False, False, ProjectionStrategy.FLAT),
        (False, True, ProjectionStrategy.FLAT),
    ])
    def test_choose_strategy(self, full_graph, paginated, expected):
        assert ProjectionEngine.choose_strategy(full_graph=full_graph, paginated=paginated) is expected

    def test_list_orders_pages_safely(self, stored_orders, engine_for):
        page = engine_for().list_orders(full_graph=True, pagination=Pagination(offset=0, limit=2))
        assert [v.order_id for v in page] == stored_orders[:2]

    def test_list_orders_unpaginated(self, stored_orders, engine_for):
        assert len(engine_for().list_orders()) == ORDER_COUNT + 1


class TestSimpleOrderViews:

    @pytest.mark.parametrize("strategy", ["naive", "fetch_to_one", "flat"])
    def test_simple_views_agree(self, stored_orders, engine_for, strategy):
        views = engine_for().list_simple_orders(strategy)
        expected = engine_for().list_simple_orders(ProjectionStrategy.FLAT)

        assert views == expected
        assert [v.order_id for v in views] == stored_orders
        assert views[0].name == "member0"

    @pytest.mark.parametrize("strategy", ["fetch_all", "batched"])
    def test_collection_strategies_not_offered(self, engine_for, strategy):
        with pytest.raises(ValidationError):
            engine_for().list_simple_orders(strategy)


class TestProjectionLogging:

    def test_query_count_logged_at_debug(self, stored_orders, engine_for, caplog):
        caplog.set_level(logging.DEBUG, logger="shopcore.services.projection")

        engine_for().list_orders_projected(ProjectionStrategy.BATCHED)

        assert "Projected 4 orders with strategy batched in 2 queries" in caplog.text

    @pytest.mark.parametrize("strategy", [ProjectionStrategy.FETCH_TO_ONE, ProjectionStrategy.FLAT])
    def test_queries_not_counted_without_debug(self, stored_orders, engine_for, caplog, monkeypatch, strategy):
        caplog.set_level(logging.INFO, logger="shopcore.services.projection")
        counted = []
        monkeypatch.setattr(projection, "count_queries", lambda bind: counted.append(bind))

        engine = engine_for()
        assert len(engine.list_orders_projected(strategy)) == ORDER_COUNT + 1
        assert len(engine.list_simple_orders(strategy)) == ORDER_COUNT + 1

        assert counted == []
        assert "Projected" not in caplog.text
