import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from shopcore.core.database import get_db
from shopcore.models.database import Address, Base, Book, Item, Member
from shopcore.services.order_service import OrderService
from main import app

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite://"


@pytest.fixture
def test_engine():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def test_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    del app.dependency_overrides[get_db]


@pytest.fixture
def sample_member(test_db):
    """Create a member to place orders for"""
    member = Member(name="userA", address=Address("Seoul", "Teheran-ro 1", "06236"))
    test_db.add(member)
    test_db.commit()
    test_db.refresh(member)
    return member


@pytest.fixture
def sample_book(test_db):
    """Create a book with 10 units in stock"""
    book = Book(name="JPA Book", price=10000, stock_quantity=10, author="Kim", isbn="978-89-960777-2-4")
    test_db.add(book)
    test_db.commit()
    test_db.refresh(book)
    return book


@pytest.fixture
def order_factory(test_db):
    """
    Place ``count`` orders, each for a different member and a different item,
    so lazy loading cannot reuse anything already in the identity map.
    """
    def make_orders(count, quantity=2):
        order_ids = []
        service = OrderService(test_db)
        for i in range(count):
            member = Member(
                name=f"member{i}",
                address=Address(f"City{i}", f"Street {i}", f"{10000 + i}"),
            )
            item = Item(name=f"Item {i}", price=1000 * (i + 1), stock_quantity=100)
            test_db.add_all([member, item])
            test_db.commit()
            order_ids.append(service.create_order(member.id, item.id, quantity))
        return order_ids

    return make_orders
