# ------------------------------------------------------------
# middleware.py — IP blacklist and per-IP rate limiting
# ------------------------------------------------------------

import logging
import threading
import time
from typing import Callable, Dict, Iterable, Optional, Set, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .errors import AppError, ErrorKind
from .handlers import error_response
from .schemas import is_valid_ip

logger = logging.getLogger(__name__)

# routes that get the tighter budget
SENSITIVE_PATHS = ("/user/login", "/user/register")


class BlacklistStore:
    """Blocked client addresses. Thread-safe; handlers run in a threadpool."""

    def __init__(self, initial: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._ips: Set[str] = set()
        for ip in initial:
            self.add(ip)

    def add(self, ip: str) -> None:
        if not is_valid_ip(ip):
            raise AppError(ErrorKind.GENERAL_INVALID_IP, cause=ValueError(f"not an IP address: {ip!r}"))
        with self._lock:
            self._ips.add(ip.strip())

    def discard(self, ip: str) -> None:
        with self._lock:
            self._ips.discard(ip)

    def __contains__(self, ip: object) -> bool:
        with self._lock:
            return ip in self._ips

    def __len__(self) -> int:
        with self._lock:
            return len(self._ips)


class RateLimiter:
    """Fixed-window counter: at most `limit` hits per key every `window` seconds."""

    def __init__(self, limit: int, window: float, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: Dict[str, Tuple[float, int]] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def hit(self, key: str) -> bool:
        """Count one request for `key`; False once the budget is spent."""
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window:
                self._sweep(now)
            started, count = self._hits.get(key, (now, 0))
            if now - started >= self.window:
                started, count = now, 0
            count += 1
            self._hits[key] = (started, count)
            return count <= self.limit

    def _sweep(self, now: float) -> None:
        # drop finished windows, at most once per window; caller holds the lock
        self._hits = {
            key: entry for key, entry in self._hits.items() if now - entry[0] < self.window
        }
        self._last_sweep = now

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


class AdmissionMiddleware(BaseHTTPMiddleware):
    """
    Reject blocked or over-budget clients before any route runs.

    A client that overruns either budget is blacklisted and gets 429;
    from then on every request from that address gets 403.
    """

    def __init__(
        self,
        app,
        blacklist: BlacklistStore,
        general: RateLimiter,
        sensitive: RateLimiter,
        sensitive_paths: Iterable[str] = SENSITIVE_PATHS,
    ):
        super().__init__(app)
        self.blacklist = blacklist
        self.general = general
        self.sensitive = sensitive
        self.sensitive_paths = tuple(sensitive_paths)

    async def dispatch(self, request: Request, call_next):
        ip = request.client.host if request.client else ""

        if ip in self.blacklist:
            return error_response(ErrorKind.GENERAL_IP_BLOCKED)

        allowed = self.general.hit(ip)
        if allowed and request.url.path in self.sensitive_paths:
            allowed = self.sensitive.hit(ip)

        if not allowed:
            if is_valid_ip(ip):
                self.blacklist.add(ip)
                logger.warning("Rate limit exceeded by %s on %s, address blacklisted", ip, request.url.path)
            else:
                logger.warning("Rate limit exceeded by unidentifiable client %r", ip)
            return error_response(ErrorKind.GENERAL_TOO_MANY_REQUESTS)

        return await call_next(request)
