"""
Iron Heart Errors
Exception hierarchy shared by the sources, the OSC emitter and the pipeline
"""


class IronHeartError(Exception):
    """Base class for all errors raised by iron_heart."""


class SettingsError(IronHeartError):
    """Raised when a settings file cannot be read or contains unknown keys."""


class SetupError(IronHeartError):
    """
    A task could not be set up (socket bind, invalid address).

    Setup errors are fatal to the task that raised them, never to the
    whole process. The pipeline turns them into a dismissable notification.
    """


class OSCSetupError(SetupError):
    """The outbound OSC socket or target address is unusable."""


class WebsocketSetupError(SetupError):
    """The WebSocket listener could not be bound."""
