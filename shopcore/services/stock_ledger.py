import logging

from shopcore.core.exceptions import InsufficientStock, ValidationError

logger = logging.getLogger(__name__)


class StockLedger:
    """
    Per-item stock counter.

    Decreases are guarded so ``stock_quantity`` never drops below zero;
    increases are unbounded. No locking happens here: two transactions
    decreasing the same item are kept apart by the enclosing unit of work
    (row lock plus the item's version column).
    """

    @staticmethod
    def decrease(item, quantity: int) -> None:
        _check_quantity(quantity)

        rest_stock = item.stock_quantity - quantity
        if rest_stock < 0:
            raise InsufficientStock(
                f"Insufficient stock for {item.name}. "
                f"Available: {item.stock_quantity}, "
                f"Requested: {quantity}"
            )

        item.stock_quantity = rest_stock
        logger.info(f"Decreased stock for {item.name}: new quantity = {rest_stock}")

    @staticmethod
    def increase(item, quantity: int) -> None:
        _check_quantity(quantity)

        item.stock_quantity += quantity
        logger.info(f"Increased stock for {item.name}: new quantity = {item.stock_quantity}")


def _check_quantity(quantity):
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError(f"Quantity must be a positive integer, got {quantity!r}")
