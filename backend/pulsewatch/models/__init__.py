"""Database models."""
from .user import User
from .monitor import Monitor
from .check import Check
from .notification_settings import NotificationSettings
from .alert import Alert
from .heartbeat import Heartbeat

__all__ = ["User", "Monitor", "Check", "NotificationSettings", "Alert", "Heartbeat"]
