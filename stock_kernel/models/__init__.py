"""ORM models for the stock kernel."""

from stock_kernel.models.batch import BatchModel

__all__ = ["BatchModel"]
