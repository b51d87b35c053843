"""Bi-monthly commission tracking, scheduled payment notifications and their webhooks."""

__all__ = [
    "models",
    "schemas",
    "calculator",
    "notifications",
    "service",
    "router",
    "webhooks",
]
