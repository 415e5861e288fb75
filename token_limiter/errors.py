"""
Exceptions raised by the limiter.
"""


class QuotaExceededError(Exception):
    """Raised when a wrapped call is rejected because the identity is over quota."""
    def __init__(self, identity: str):
        super().__init__(f"rate limit exceeded for user {identity}")
        self.identity = identity
