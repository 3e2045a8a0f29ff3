"""
Utility functions
"""
from helpdesk_sim.utils.logger import setup_logger, get_logger
from helpdesk_sim.utils.clock import Clock, seconds_to_ms
from helpdesk_sim.utils.dice import Dice
from helpdesk_sim.utils.text import normalize_words, shares_keywords, short_id

__all__ = [
    "setup_logger",
    "get_logger",
    "Clock",
    "seconds_to_ms",
    "Dice",
    "normalize_words",
    "shares_keywords",
    "short_id",
]
