"""
Errors raised by the order repository.

Each carries a user-legible message and the HTTP status the API layer
answers with, so callers never need to parse message text.
"""


class OrderError(Exception):
    status_code = 400
    default_message = "Order operation failed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class OrderNotFound(OrderError):
    status_code = 404
    default_message = "Order not found"


class OrderAccessDenied(OrderError):
    status_code = 403
    default_message = "Unauthorized: Order does not belong to user"


class InvalidOrderTransition(OrderError):
    status_code = 400
    default_message = "Invalid order status transition"


class OrderNumberGenerationError(OrderError):
    status_code = 500
    default_message = "Failed to generate order number"
