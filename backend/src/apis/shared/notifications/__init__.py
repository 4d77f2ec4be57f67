"""Task lifecycle notifications."""

from .service import NotificationService, SUPPORTED_EVENTS

__all__ = ["NotificationService", "SUPPORTED_EVENTS"]
