"""Runtime primitives backing the Hearthstead HTTP API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from hearthstead.config import Settings, get_settings
from hearthstead.database import create_db_engine, create_session_factory, init_db
from hearthstead.domain.rules_config import DEFAULT_RULES, RulesConfig
from hearthstead.models import seed_all_demo_data, utc_now
from hearthstead.services.executor import TransitionExecutor
from hearthstead.services.locking import SubjectLocks

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """Background loop running the periodic rule sweeps.

    Sweeps run in a worker thread with their own session; the asyncio lock
    keeps a manual ``run_now`` from overlapping the loop.
    """

    MIN_INTERVAL_SECONDS = 0.1

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        locks: SubjectLocks,
        rules: RulesConfig = DEFAULT_RULES,
        base_interval_seconds: float,
        debug_multiplier: float = 1.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._locks = locks
        self._rules = rules
        self._clock = clock
        self._base_interval = max(base_interval_seconds, self.MIN_INTERVAL_SECONDS)
        self._debug_multiplier = max(debug_multiplier, 0.01)
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._sweep_lock = asyncio.Lock()
        self.last_run_at: datetime | None = None
        self.last_results: dict[str, Any] = {}

    @property
    def interval_seconds(self) -> float:
        return max(self.MIN_INTERVAL_SECONDS, self._base_interval * self._debug_multiplier)

    @property
    def base_interval_seconds(self) -> float:
        return self._base_interval

    @property
    def debug_multiplier(self) -> float:
        return self._debug_multiplier

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def set_base_interval(self, seconds: float) -> None:
        self._base_interval = max(seconds, self.MIN_INTERVAL_SECONDS)

    def set_debug_multiplier(self, multiplier: float) -> None:
        self._debug_multiplier = max(multiplier, 0.01)

    def start(self) -> None:
        if not self.running:
            self._stop_event = asyncio.Event()
            loop = asyncio.get_running_loop()
            self._task = loop.create_task(self._run_loop(), name="hearthstead-maintenance")

    async def stop(self) -> None:
        task = self._task
        if task is None:
            return
        self._stop_event.set()
        await task
        self._task = None

    async def run_now(self, now: datetime | None = None) -> dict[str, Any]:
        async with self._sweep_lock:
            return await asyncio.to_thread(self._sweep_sync, now)

    async def _run_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                    break
                except TimeoutError:
                    pass
                try:
                    await self.run_now()
                except Exception:
                    logger.exception("maintenance sweep crashed")
        finally:
            self._task = None

    def _sweep_sync(self, now: datetime | None) -> dict[str, Any]:
        now = now or self._clock()
        with self._session_factory() as session:
            executor = TransitionExecutor(
                session, rules=self._rules, locks=self._locks, clock=self._clock
            )
            results = executor.run_maintenance(now)
        failed = [name for name, result in results.items() if result is None]
        if failed:
            logger.warning("maintenance sweeps failed: %s", ", ".join(failed))
        self.last_run_at = now
        self.last_results = results
        return results


class ApiState:
    """Aggregated services shared by the FastAPI layer."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        rules: RulesConfig = DEFAULT_RULES,
        engine: Engine | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.rules = rules
        self.engine = engine or create_db_engine(self.settings)
        self.session_factory = create_session_factory(self.engine)
        self.locks = SubjectLocks()
        init_db(self.engine)
        if self.settings.seed_demo_data:
            with self.session_factory() as session:
                seed_all_demo_data(session)
        self.maintenance = MaintenanceScheduler(
            self.session_factory,
            locks=self.locks,
            rules=rules,
            base_interval_seconds=self.settings.maintenance_interval_seconds,
            debug_multiplier=self.settings.debug_speed_multiplier,
        )

    def executor(self, session: Session) -> TransitionExecutor:
        return TransitionExecutor(session, rules=self.rules, locks=self.locks)

    async def startup(self) -> None:
        if self.settings.maintenance_enabled:
            self.maintenance.start()

    async def shutdown(self) -> None:
        await self.maintenance.stop()
        self.engine.dispose()


def build_state() -> ApiState:
    """Factory used by the API to initialize state."""

    return ApiState()
