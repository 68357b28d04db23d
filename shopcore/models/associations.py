"""
Bidirectional link maintenance.

Each relationship below has one persisted (owning) side and one read-only
inverse mapped with ``viewonly=True``. These functions are the only place
that touches both sides, so the in-memory graph stays consistent inside a
unit of work without waiting for a flush and a reload.

An inverse collection of a persistent object that has not been loaded yet
is left alone: it is read from the owning side the first time it is used,
and loading it just to append would read the whole history.
"""
from sqlalchemy import inspect


def _is_loaded(obj, key):
    state = inspect(obj)
    return state.key is None or key not in state.unloaded


def assign_member(order, member):
    """Order -> Member; also lists the order in ``member.orders``"""
    previous = order.member
    if (
        previous is not None
        and previous is not member
        and _is_loaded(previous, "orders")
        and order in previous.orders
    ):
        previous.orders.remove(order)

    order.member = member
    if _is_loaded(member, "orders") and order not in member.orders:
        member.orders.append(order)


def assign_delivery(order, delivery):
    """Order -> Delivery (one-to-one, owned by the order)"""
    order.delivery = delivery
    delivery.order = order


def add_order_line(order, line):
    """Order -> OrderLine (owned by the order)"""
    if line not in order.lines:
        order.lines.append(line)
    line.order = order


def add_child_category(parent, child):
    previous = child.parent
    if (
        previous is not None
        and previous is not parent
        and _is_loaded(previous, "children")
        and child in previous.children
    ):
        previous.children.remove(child)

    child.parent = parent
    if _is_loaded(parent, "children") and child not in parent.children:
        parent.children.append(child)


def add_category_item(category, item):
    """Category <-> Item (many-to-many through ``category_items``)"""
    if item not in category.items:
        category.items.append(item)
    if _is_loaded(item, "categories") and category not in item.categories:
        item.categories.append(category)
