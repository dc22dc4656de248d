"""
PLATFORM EVENTS
Domain code announces what happened; the alerting service decides whether it
deserves an admin notification.

    platform_event.send(sender=Device, event="device.offline_spike", count=6, threshold=5, farmId="...")
"""
from django.dispatch import Signal

platform_event = Signal()


def emit(sender, event, **data):
    """Send a platform event; receivers get `event` plus the keyword payload."""
    return platform_event.send(sender=sender, event=event, **data)
