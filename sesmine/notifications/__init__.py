"""Outbound notifications"""

from .gateway import EventKind, NotificationEvent, NotificationGateway, Notifier

__all__ = ["EventKind", "NotificationEvent", "NotificationGateway", "Notifier"]
