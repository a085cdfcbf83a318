from fastapi import HTTPException, Request
from typing import Dict, List
import time

from .config import settings


class RateLimiter:
    def __init__(self):
        self.requests: Dict[str, List[float]] = {}

    async def check_rate_limit(self, request: Request, max_requests: int = 60, window: int = 60):
        """Check rate limit for endpoint"""
        client_ip = request.client.host if request.client else "unknown"
        endpoint = str(request.url.path)
        key = f"{client_ip}:{endpoint}"

        now = time.time()

        # Clean old requests
        self.requests[key] = [req_time for req_time in self.requests.get(key, []) if now - req_time < window]

        if len(self.requests[key]) >= max_requests:
            raise HTTPException(status_code=429, detail="Too many requests, please try again later")

        self.requests[key].append(now)

    def reset(self):
        self.requests.clear()


rate_limiter = RateLimiter()


async def auth_rate_limit(request: Request):
    """Dependency throttling credential and code endpoints per client."""
    await rate_limiter.check_rate_limit(
        request,
        max_requests=settings.auth_rate_limit,
        window=settings.auth_rate_window,
    )
