class ShopError(Exception):
    """Base class for errors raised by the order core"""
    pass


class ValidationError(ShopError):
    """Raised for malformed or missing input, before any mutation starts"""
    pass


class PaginationNotSupported(ValidationError):
    """Raised when offset/limit is requested from a strategy that cannot page"""
    pass


class DomainInvariantViolation(ShopError):
    """Raised when an operation would break a domain rule"""
    pass


class InsufficientStock(DomainInvariantViolation):
    pass


class AlreadyDelivered(DomainInvariantViolation):
    pass


class OrderAlreadyCancelled(DomainInvariantViolation):
    pass


class ConcurrencyConflictError(DomainInvariantViolation):
    """Raised when a concurrent transaction modified the same row first"""
    pass


class NotFound(ShopError):
    """Raised when a lookup by id finds nothing"""
    pass


class MemberNotFound(NotFound):
    pass


class ItemNotFound(NotFound):
    pass


class OrderNotFound(NotFound):
    pass
