"""
Rate limiting for the generation endpoint

Generation is the only call that reaches a paid AI provider, so it is the
only one limited. Callers are counted by client address: the X-User-Id
header is unauthenticated and can be changed on every request.
"""
import time
from collections import deque
from fastapi import HTTPException, Request
from typing import Deque, Dict, Optional
import logging

from app.config import settings
from app.utils.identity import get_client_address

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    In-memory sliding-window rate limiter keyed by client
    Production: Use Redis for distributed rate limiting
    """

    WINDOWS = (("minute", 60), ("hour", 3600))
    LONGEST_WINDOW = 3600

    def __init__(self, requests_per_minute: int = 10, requests_per_hour: int = 100):
        self.limits = {"minute": requests_per_minute, "hour": requests_per_hour}
        # {client_id: timestamps within the last hour, oldest first}
        self.history: Dict[str, Deque[float]] = {}

    def reset(self) -> None:
        self.history.clear()

    def _cleanup_old_entries(self, now: float) -> None:
        """Drop timestamps past the longest window and clients left with none"""
        cutoff = now - self.LONGEST_WINDOW

        for client_id in list(self.history.keys()):
            stamps = self.history[client_id]
            while stamps and stamps[0] <= cutoff:
                stamps.popleft()

            # Remove empty entries
            if not stamps:
                del self.history[client_id]

    def check(self, client_id: str, now: Optional[float] = None) -> None:
        """
        Record a request for client_id, or refuse it

        Raises:
            HTTPException: 429 if either window is full
        """
        now = time.time() if now is None else now
        self._cleanup_old_entries(now)
        stamps = self.history.get(client_id, deque())

        for window, seconds in self.WINDOWS:
            used = sum(1 for ts in stamps if ts > now - seconds)
            limit = self.limits[window]
            if used >= limit:
                logger.warning(f"Rate limit exceeded ({window}): {client_id}")
                raise HTTPException(
                    status_code=429,
                    detail={
                        "error": "rate_limit_exceeded",
                        "message": f"Too many generation requests. Limit: {limit} per {window}",
                        "retry_after": seconds
                    }
                )

        stamps.append(now)
        self.history[client_id] = stamps
        logger.debug(f"Rate limit check passed: {client_id} ({len(stamps)} in the last hour)")


# Global instance
rate_limiter = RateLimiter(
    requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=settings.RATE_LIMIT_PER_HOUR
)


async def enforce_generation_rate_limit(request: Request) -> str:
    """FastAPI dependency applying the limiter to the calling client"""
    client_id = get_client_address(request)
    rate_limiter.check(client_id)
    return client_id
