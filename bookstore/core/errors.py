class BookstoreError(Exception):
    """Base for every business error raised by the order and inventory core."""


class ValidationError(BookstoreError):
    """A business rule was violated; surfaced to the caller as-is, never retried."""


class NotFoundError(BookstoreError):
    """A referenced book, address, order, supplier or promotion is missing or not visible."""


class InsufficientStockError(ValidationError):
    def __init__(self, book_id: int, available: int, requested: int, title: str | None = None):
        self.book_id = book_id
        self.available = available
        self.requested = requested
        label = f"'{title}'" if title else f"id {book_id}"
        super().__init__(f"Insufficient stock for book {label}: available={available}, requested={requested}")


class IllegalStatusTransition(ValidationError):
    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"Order cannot move from '{current.value}' to '{requested.value}'")
