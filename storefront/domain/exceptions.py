class DomainException(Exception):
    pass


class ValidationError(DomainException):
    pass


class CartLimitExceededError(ValidationError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Cart cannot hold more than {limit} different products")


class NotFoundError(DomainException):
    pass


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class OrderNotFoundError(NotFoundError):
    pass


class CartNotFoundError(NotFoundError):
    pass


class CartItemNotFoundError(NotFoundError):
    pass


class InsufficientStockError(DomainException):
    def __init__(self, product_id: str, available: int, required: int):
        self.product_id = product_id
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient stock for product {product_id}. Available: {available}, required: {required}"
        )


class InvalidTransitionError(DomainException):
    def __init__(self, order_id: str, current, target):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(f"Order {order_id} cannot move from {current} to {target}")
