"""Shared service infrastructure for microservices."""

from harmony_bridge.shared.services.base import BaseService, ServiceConfig

__all__ = [
    "BaseService",
    "ServiceConfig",
]
