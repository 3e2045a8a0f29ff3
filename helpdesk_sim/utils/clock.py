"""
Wall clock in epoch milliseconds
"""
import time


class Clock:
    """Source of 'now' for deadlines and the shift countdown"""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


def seconds_to_ms(seconds: float) -> int:
    return int(round(seconds * 1000))
