"""Aggregate application use cases."""

from .notifications import DeliveryService, Dispatcher, JobGenerator

__all__ = [
    "DeliveryService",
    "Dispatcher",
    "JobGenerator",
]
