"""
Error types raised by the scheduler. Triggers decide which of these are
silent (gateway) and which surface to the user (provider, config, store).
"""

USER_NOTICE = "unable to schedule prayer times - check location settings"


class SchedulerError(Exception):
    """Base class for all scheduler errors."""


class ConfigMissing(SchedulerError):
    """No location saved; reconcile is a no-op."""


class ConfigError(SchedulerError):
    """Location or preferences present in config but invalid."""


class ProviderFailure(SchedulerError):
    """Prayer times could not be computed for a date/location."""


class StoreCorruption(SchedulerError):
    """ScheduleStore could not be read or written."""


class GatewayError(SchedulerError):
    """Notification subsystem rejected or could not serve a call."""


class GatewayUnavailable(GatewayError):
    """Notification subsystem is temporarily unavailable."""


class NotificationNotFound(GatewayError):
    """Cancel of a handle the gateway does not know. Not an error for callers."""
