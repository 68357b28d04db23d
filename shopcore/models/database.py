import enum
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Table
from sqlalchemy.orm import composite, declarative_base, relationship

from shopcore.core.exceptions import AlreadyDelivered, OrderAlreadyCancelled, ValidationError
from shopcore.models.associations import add_order_line, assign_delivery, assign_member
from shopcore.services.stock_ledger import StockLedger

Base = declarative_base()


class OrderStatus(str, enum.Enum):
    PLACED = "PLACED"
    CANCELLED = "CANCELLED"


class DeliveryStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class Address:
    """Immutable address value shared by members and deliveries"""
    city: str
    street: str
    zipcode: str

    def __composite_values__(self):
        return self.city, self.street, self.zipcode


category_items = Table(
    "category_items",
    Base.metadata,
    Column("category_id", Integer, ForeignKey("categories.id"), primary_key=True),
    Column("item_id", Integer, ForeignKey("items.id"), primary_key=True),
)


class Member(Base):
    """Customer placing orders"""
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    city = Column(String)
    street = Column(String)
    zipcode = Column(String)

    address = composite(Address, city, street, zipcode)

    # Read-only inverse of Order.member
    orders = relationship("Order", viewonly=True, order_by="Order.id")


class Item(Base):
    """
    Sellable item. Subtypes share the ``items`` table and are told apart by
    the ``dtype`` discriminator.
    """
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    dtype = Column(String(1), nullable=False)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)  # For optimistic locking

    # Read-only inverse of Category.items
    categories = relationship("Category", secondary=category_items, viewonly=True)

    __mapper_args__ = {
        "polymorphic_on": dtype,
        "polymorphic_identity": "I",
        "version_id_col": version,
    }

    def remove_stock(self, quantity: int) -> None:
        StockLedger.decrease(self, quantity)

    def add_stock(self, quantity: int) -> None:
        StockLedger.increase(self, quantity)


class Book(Item):
    __mapper_args__ = {"polymorphic_identity": "B"}

    author = Column(String)
    isbn = Column(String)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"))

    parent = relationship("Category", remote_side=[id])
    # Read-only inverse of Category.parent
    children = relationship("Category", viewonly=True, order_by="Category.id")
    items = relationship("Item", secondary=category_items, order_by="Item.id")


class Delivery(Base):
    """Shipping record, owned by exactly one order"""
    __tablename__ = "deliveries"

    id = Column(Integer, primary_key=True, index=True)
    city = Column(String)
    street = Column(String)
    zipcode = Column(String)
    status = Column(Enum(DeliveryStatus), nullable=False, default=DeliveryStatus.PENDING)

    address = composite(Address, city, street, zipcode)

    # Read-only inverse of Order.delivery
    order = relationship("Order", viewonly=True, uselist=False)

    def complete(self) -> None:
        self.status = DeliveryStatus.COMPLETED


class OrderLine(Base):
    """One item within an order. Price is captured when the order is placed."""
    __tablename__ = "order_lines"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    unit_price = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)

    item = relationship("Item")
    # Read-only inverse of Order.lines
    order = relationship("Order", viewonly=True)

    @classmethod
    def create(cls, item: Item, unit_price: int, quantity: int) -> "OrderLine":
        if quantity is None or quantity <= 0:
            raise ValidationError(f"Order line quantity must be positive, got {quantity!r}")
        return cls(item=item, unit_price=unit_price, quantity=quantity)

    def cancel(self) -> None:
        """Give the ordered quantity back to the item's stock"""
        self.item.add_stock(self.quantity)

    def total_price(self) -> int:
        return self.unit_price * self.quantity


class Order(Base):
    """Order aggregate: member, delivery and lines are only changed through it"""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    delivery_id = Column(Integer, ForeignKey("deliveries.id"), nullable=False, unique=True)
    order_date = Column(DateTime, nullable=False)
    status = Column(Enum(OrderStatus), nullable=False, index=True)

    member = relationship("Member")
    delivery = relationship("Delivery", cascade="all, delete-orphan", single_parent=True)
    lines = relationship("OrderLine", cascade="all, delete-orphan", order_by="OrderLine.id")

    @classmethod
    def create(cls, member: Member, delivery: Delivery, *lines: OrderLine) -> "Order":
        """
        Build a placed order and take its lines out of stock.

        Raises InsufficientStock if any line cannot be served. Stock changes
        already applied to earlier lines are undone by the unit of work
        rollback, so callers must run this inside one.
        """
        if not lines:
            raise ValidationError("An order needs at least one line")

        order = cls()
        assign_member(order, member)
        assign_delivery(order, delivery)
        for line in lines:
            add_order_line(order, line)

        for line in lines:
            line.item.remove_stock(line.quantity)

        order.status = OrderStatus.PLACED
        order.order_date = datetime.now()
        return order

    def cancel(self) -> None:
        if self.delivery.status == DeliveryStatus.COMPLETED:
            raise AlreadyDelivered(f"Order {self.id} has already been delivered and cannot be cancelled")
        if self.status == OrderStatus.CANCELLED:
            raise OrderAlreadyCancelled(f"Order {self.id} is already cancelled")

        self.status = OrderStatus.CANCELLED
        for line in self.lines:
            line.cancel()

    def complete_delivery(self) -> None:
        """Hand the order over; from now on it can no longer be cancelled"""
        if self.status == OrderStatus.CANCELLED:
            raise OrderAlreadyCancelled(f"Order {self.id} is cancelled and cannot be delivered")
        self.delivery.complete()

    def total_price(self) -> int:
        return sum(line.total_price() for line in self.lines)
