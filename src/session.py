"""
Session context shared by the scan loop and the outbound interceptor
"""

from dataclasses import dataclass
from enum import Enum

COUNTER_WRAP = 1000000


class InterceptorState(Enum):
    IDLE = "idle"
    ARMED = "armed"


@dataclass
class SessionContext:
    """
    Page-lifetime state. Only the scan loop tick and the keystroke handler
    mutate it, both on the same thread.
    """
    emoji_cache: object
    passphrase: str = ''
    pending_send: bool = False
    interceptor_state: InterceptorState = InterceptorState.IDLE
    tick_count: int = 0

    def advance(self):
        self.tick_count = (self.tick_count + 1) % COUNTER_WRAP
        return self.tick_count
