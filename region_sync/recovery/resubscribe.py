"""Re-establishment policy for broken remote notification streams.

When a slot's listener reports an error the link publishes a
SubscriptionFailure and asks its policy whether, and after how long, the
remote lane should be listened to again.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass
class ResubscribePolicy:
    """Retry budget and backoff for re-listening to a remote slot.

    Attributes:
        max_attempts: Consecutive attempts before giving up (None = forever)
        delay_s: Delay before the first attempt
        backoff: Multiplier applied to the delay after each attempt
        max_delay_s: Upper bound for the delay
    """
    max_attempts: Optional[int] = None
    delay_s: float = 0.5
    backoff: float = 2.0
    max_delay_s: float = 30.0

    def __post_init__(self):
        """Validate retry settings."""
        if self.max_attempts is not None and self.max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {self.max_attempts}")
        if self.delay_s < 0:
            raise ValueError(f"delay_s must be >= 0, got {self.delay_s}")
        if self.backoff < 1.0:
            raise ValueError(f"backoff must be >= 1.0, got {self.backoff}")

    def should_retry(self, attempt: int) -> bool:
        """Whether attempt number ``attempt`` (1-based) is within budget."""
        if self.max_attempts is None:
            return True
        return attempt <= self.max_attempts

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds before attempt number ``attempt`` (1-based)."""
        delay = self.delay_s * (self.backoff ** max(attempt - 1, 0))
        return min(delay, self.max_delay_s)

    def to_dict(self) -> dict:
        """Convert policy to dictionary."""
        return {
            "max_attempts": self.max_attempts,
            "delay_s": self.delay_s,
            "backoff": self.backoff,
            "max_delay_s": self.max_delay_s,
        }


def schedule(
    delay_s: float, action: Callable[[], None], inline: bool = True
) -> Optional[threading.Timer]:
    """Run ``action`` after ``delay_s`` seconds.

    A zero delay with ``inline`` set runs the action on the calling thread
    and returns None. Otherwise a started daemon Timer is returned so the
    caller can cancel it.
    """
    if delay_s <= 0 and inline:
        action()
        return None

    timer = threading.Timer(delay_s, action)
    timer.daemon = True
    timer.start()
    return timer
