"""
Винятки key-value сховища.
"""


class StoreError(Exception):
    """Базовий виняток для всіх помилок сховища."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConnectionExhaustedError(StoreError):
    """Усі спроби підключення до бази провалились."""

    def __init__(self, attempts: int, details: str | None = None):
        super().__init__(
            f"Database connection failed after {attempts} attempts",
            details=details,
        )
        self.attempts = attempts


class SchemaError(StoreError):
    """Не вдалося створити таблицю data."""

    def __init__(self, details: str | None = None):
        super().__init__("Failed to ensure the data table", details=details)


class InvalidArgumentError(StoreError, ValueError):
    """write/update викликали з некоректними аргументами."""


class StoreClosedError(StoreError):
    """Сховище використали після close()."""

    def __init__(self):
        super().__init__("Store is closed")
