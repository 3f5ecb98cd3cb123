from aiolimiter import AsyncLimiter

DEFAULT_RPM = 30


class RateLimiter:
    """Single-token bucket shared by every request one engine makes.

    The bucket holds one token and refills at ``requests_per_minute``, so
    requests are spaced ``60 / rpm`` seconds apart with no bursting.
    """

    def __init__(self, requests_per_minute: int = DEFAULT_RPM) -> None:
        if requests_per_minute <= 0:
            requests_per_minute = DEFAULT_RPM
        self.requests_per_minute = requests_per_minute
        self.interval_s = 60.0 / requests_per_minute
        self._limiter = AsyncLimiter(max_rate=1, time_period=self.interval_s)

    def allow(self) -> bool:
        """Report whether a token is available right now, without taking it."""
        return self._limiter.has_capacity()

    async def wait(self) -> None:
        # Cancelling the awaiting task aborts the wait.
        await self._limiter.acquire()
