"""
Iron Heart Task Coordinator
Shutdown signalling, UI updates and status hand-off between tasks
"""

from .clock import SessionClock
from .coordinator import TaskCoordinator
from .shutdown import ShutdownToken
from .updates import (
    AppUpdate,
    ErrorPopup,
    ListeningAddress,
    Severity,
    StatusChannel,
    StatusUpdate,
    UpdateBroadcaster,
)

__all__ = [
    'SessionClock',
    'TaskCoordinator',
    'ShutdownToken',
    'AppUpdate',
    'ErrorPopup',
    'ListeningAddress',
    'Severity',
    'StatusChannel',
    'StatusUpdate',
    'UpdateBroadcaster',
]
