"""
Session Sweeper Worker.

Periodically removes guided SMS sessions that have been idle past the TTL
and hands each one to a callback. The default callback salvages sessions
that collected anything into an intake record.

With the Redis session backend it runs as its own long-lived process:
    python -m intake_engine.workers.session_sweeper

With the in-memory backend the sessions only exist inside the process that
runs the pipeline, so the sweeper has to run there too:
    SessionSweeperWorker.for_pipeline(pipeline).start_background()
"""

from __future__ import annotations

import asyncio
import signal
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from dotenv import load_dotenv

from intake_engine.config import get_settings
from intake_engine.db import get_db
from intake_engine.logging_config import get_logger, mask_phone, setup_logging
from intake_engine.schemas.session import GuidedSession
from intake_engine.services.guided_session import GuidedSessionMachine
from intake_engine.services.intake_pipeline import IntakePipeline
from intake_engine.services.session_store import InMemorySessionStore, SessionStore, create_session_store
from intake_engine.workers.classification_worker import ClassificationDispatcher

logger = get_logger(__name__)

ExpiredHandler = Callable[[GuidedSession], Awaitable[object]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionSweeperWorker:
    """Runs ``SessionStore.sweep`` on a fixed interval."""

    def __init__(
        self,
        store: SessionStore,
        on_expired: ExpiredHandler,
        interval_seconds: Optional[float] = None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        settings = get_settings()
        self.store = store
        self.on_expired = on_expired
        self.interval_seconds = interval_seconds or settings.session_sweep_interval_seconds
        self.ttl_seconds = ttl_seconds or settings.session_ttl_seconds
        self.clock = clock
        self._running = False
        self._wake = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None

    @classmethod
    def for_pipeline(cls, pipeline: IntakePipeline, interval_seconds: Optional[float] = None) -> SessionSweeperWorker:
        """Sweep the pipeline's own session store and salvage into its record store."""
        if pipeline.machine is None:
            raise ValueError("Pipeline has no guided session machine to sweep")
        return cls(
            pipeline.machine.store,
            pipeline.salvage_session,
            interval_seconds=interval_seconds,
            ttl_seconds=pipeline.machine.ttl_seconds,
            clock=pipeline.clock,
        )

    async def start(self) -> None:
        """Start the sweep loop."""
        self._running = True
        self._wake.clear()
        logger.info(
            "session_sweeper_started",
            interval_seconds=self.interval_seconds,
            ttl_seconds=self.ttl_seconds,
        )

        while self._running:
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error("session_sweep_error", error=str(e))
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

    def start_background(self) -> asyncio.Task[None]:
        """Run the loop as a task of the current event loop."""
        self._task = asyncio.create_task(self.start())
        return self._task

    async def stop(self) -> None:
        self._running = False
        self._wake.set()
        logger.info("session_sweeper_stopped")

    async def sweep_once(self) -> int:
        """
        Sweep expired sessions and pass each to ``on_expired``.

        A failing callback is logged and does not stop the rest of the sweep.
        Returns the number of sessions swept.
        """
        expired = await self.store.sweep(self.clock(), self.ttl_seconds)
        for session in expired:
            try:
                await self.on_expired(session)
            except Exception as e:
                logger.error(
                    "expired_session_handler_error",
                    phone=mask_phone(session.identity),
                    error=str(e),
                )

        if expired:
            logger.info("sessions_swept", count=len(expired))
        return len(expired)


async def main() -> None:
    load_dotenv(".env.local")
    setup_logging()

    store = await create_session_store()
    if isinstance(store, InMemorySessionStore):
        # A separate process would only ever see its own empty dict
        logger.error(
            "session_sweeper_needs_shared_store",
            backend=get_settings().session_backend.value,
            hint="set SESSION_BACKEND=redis or run SessionSweeperWorker.for_pipeline in the pipeline process",
        )
        return

    dispatcher = ClassificationDispatcher(get_db())
    pipeline = IntakePipeline(get_db(), dispatcher, machine=GuidedSessionMachine(store))
    worker = SessionSweeperWorker(store, pipeline.salvage_session)

    loop = asyncio.get_running_loop()

    def shutdown_handler() -> None:
        logger.info("shutdown_signal_received")
        asyncio.ensure_future(worker.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await worker.start()
    finally:
        await dispatcher.drain(timeout=get_settings().classifier_timeout_seconds * 2)
        close = getattr(store, "close", None)
        if close is not None:
            await close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
