"""OTP store — persisted one-time passcodes with expiry and a background sweep."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncEngine

from otp_service.database.engine import build_engine, build_session_factory, init_db
from otp_service.database.repository import OtpRepository

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=5)
DEFAULT_PURGE_INTERVAL = timedelta(seconds=60)


def _now_ms() -> int:
    return int(time.time() * 1000)


class OtpStore:
    """Issues, verifies and expires OTP records.

    Every storage operation runs in its own short transaction and holds
    the store lock only for that transaction.  Verification is a single
    conditional delete, so of several concurrent ``verify`` calls for the
    same record at most one returns ``True``.

    Use :func:`create_otp_store` rather than instantiating directly; it
    makes sure the table exists and starts the sweep task.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        purge_interval: timedelta = DEFAULT_PURGE_INTERVAL,
        clock: Callable[[], int] | None = None,
        testing: bool = False,
        owns_engine: bool = False,
    ) -> None:
        self._engine = engine
        self._session_factory = build_session_factory(engine)
        self._purge_interval = purge_interval
        self._clock = clock or _now_ms
        self._testing = testing
        self._owns_engine = owns_engine
        self._lock = asyncio.Lock()
        self._sweep_task: asyncio.Task | None = None
        self._stopped = False

    # ── Lifecycle ────────────────────────────────────────

    def start(self) -> None:
        """Start the periodic purge task."""
        if self._sweep_task is not None:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="otp-sweep")
        logger.info(
            "OTP sweep started (every %.1fs)", self._purge_interval.total_seconds()
        )

    async def shutdown(self) -> None:
        """Stop the sweep task.  Outstanding records are kept."""
        if self._stopped:
            return
        self._stopped = True

        task, self._sweep_task = self._sweep_task, None
        try:
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        finally:
            if self._owns_engine:
                await self._engine.dispose()
            logger.info("OTP store stopped")

    @property
    def is_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    # ── Operations ───────────────────────────────────────

    async def issue(self, user_id: str, code: str, ttl: timedelta = DEFAULT_TTL) -> None:
        """Persist *code* for *user_id*, valid for *ttl* from now."""
        expires_at = self._clock() + int(ttl.total_seconds() * 1000)
        async with self._lock, self._session_factory.begin() as session:
            await OtpRepository(session).add(user_id, code, expires_at)

    async def verify(self, user_id: str, code: str) -> bool:
        """Consume a matching, unexpired record.

        Returns ``False`` without side effects when nothing matches or the
        match has already expired; expired rows are left for the sweep.
        """
        async with self._lock, self._session_factory.begin() as session:
            return await OtpRepository(session).consume(user_id, code, self._clock())

    async def purge_expired(self) -> None:
        """Delete every record whose expiry has passed."""
        async with self._lock, self._session_factory.begin() as session:
            removed = await OtpRepository(session).purge_expired(self._clock())
        if removed:
            logger.debug("Purged %d expired OTP(s)", removed)

    async def peek_code(self, user_id: str) -> str | None:
        """Return an outstanding code for *user_id* without consuming it.

        Only available on stores created in testing mode.
        """
        if not self._testing:
            raise RuntimeError("peek_code is only available in testing mode")
        async with self._lock, self._session_factory() as session:
            return await OtpRepository(session).find_code(user_id)

    # ── Internals ────────────────────────────────────────

    async def _sweep_loop(self) -> None:
        interval = self._purge_interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            try:
                await self.purge_expired()
            except Exception:
                logger.exception("Expired OTP purge failed; stopping sweep")
                raise


async def create_otp_store(
    engine: AsyncEngine | None = None,
    *,
    purge_interval: timedelta = DEFAULT_PURGE_INTERVAL,
    clock: Callable[[], int] | None = None,
    testing: bool = False,
) -> OtpStore:
    """Prepare storage and return a running :class:`OtpStore`.

    Without an *engine* an in-memory SQLite database is created and owned
    by the store.
    """
    owns_engine = engine is None
    if engine is None:
        engine = build_engine("sqlite+aiosqlite://")
    try:
        await init_db(engine)
    except Exception:
        if owns_engine:
            await engine.dispose()
        raise

    store = OtpStore(
        engine,
        purge_interval=purge_interval,
        clock=clock,
        testing=testing,
        owns_engine=owns_engine,
    )
    store.start()
    return store
