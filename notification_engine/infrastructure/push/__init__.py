"""Push transport adapters for the infrastructure layer."""

from .deliverer import HttpPushDeliverer, build_push_deliverer

__all__ = ["HttpPushDeliverer", "build_push_deliverer"]
