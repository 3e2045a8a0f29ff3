"""
Simulation errors

Simulated outcomes (AI misses, colleague refusals, unhappy clients) are
regular events, not exceptions. These classes cover requests the engine
refuses to act on.
"""
from helpdesk_sim.models.schemas import NotificationType


class SimulationError(Exception):
    """Base class; carries the notification level shown to the participant"""

    level: NotificationType = NotificationType.ERROR

    def __init__(self, message: str, level: NotificationType = None):
        super().__init__(message)
        self.message = message
        if level is not None:
            self.level = level


class NotFoundError(SimulationError):
    """Participant, session, ticket or colleague does not exist"""


class NotEligibleError(SimulationError):
    """Action attempted outside its stage, track or status window"""
