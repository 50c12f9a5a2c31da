"""Timed light effects: detached disco jobs and the in-line flash sequence."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from enum import StrEnum

from huemcp.lib.bridge import HueBridge
from huemcp.lib.conversions import MAX_BRI

DISCO_PALETTE: tuple[tuple[int, int, int], ...] = (
    (255, 0, 0),
    (255, 255, 0),
    (0, 255, 0),
    (0, 255, 255),
    (0, 0, 255),
    (255, 0, 255),
)
DEFAULT_DISCO_DURATION = 30.0
DEFAULT_DISCO_SPEED_MS = 500
DEFAULT_FLASH_TIMES = 3
FLASH_INTERVAL = 0.5

log = logging.getLogger("huemcp")


class JobState(StrEnum):
    running = enum.auto()
    completed = enum.auto()
    cancelled = enum.auto()


@dataclass
class EffectJob:
    light_id: str
    colors: tuple[tuple[int, int, int], ...]
    interval: float
    duration: float
    started_at: float
    state: JobState = JobState.running
    ticks: int = 0
    task: asyncio.Task[None] | None = field(default=None, repr=False)

    def cancel(self) -> bool:
        if self.state is not JobState.running:
            return False
        self.state = JobState.cancelled
        if self.task is not None:
            self.task.cancel()
        return True

    async def wait(self) -> None:
        """Block until the job's ticking task has finished, however it ended."""
        if self.task is not None:
            await asyncio.wait({self.task})


class EffectEngine:
    """Owns the running effect jobs, one registry slot per light.

    Starting a job on a light that already has one cancels the older job.
    With ``allow_overlap`` both keep running and race on the light's state;
    only the newest is reachable through the registry.
    """

    def __init__(
        self,
        bridge: HueBridge,
        *,
        allow_overlap: bool = False,
        flash_interval: float = FLASH_INTERVAL,
    ) -> None:
        self.bridge = bridge
        self.allow_overlap = allow_overlap
        self.flash_interval = flash_interval
        self.jobs: dict[str, EffectJob] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    def start_disco(
        self,
        light_id: str,
        *,
        duration: float = DEFAULT_DISCO_DURATION,
        speed_ms: float = DEFAULT_DISCO_SPEED_MS,
    ) -> EffectJob:
        loop = asyncio.get_running_loop()
        previous = self.jobs.get(light_id)
        if previous is not None and not self.allow_overlap and previous.cancel():
            log.info("Replacing running effect on light %s", light_id)

        job = EffectJob(
            light_id=light_id,
            colors=DISCO_PALETTE,
            interval=speed_ms / 1000,
            duration=duration,
            started_at=loop.time(),
        )
        job.task = loop.create_task(self._run_disco(job), name=f"disco-{light_id}")
        self.jobs[light_id] = job
        self._tasks.add(job.task)
        job.task.add_done_callback(lambda task: self._forget(job, task))
        log.info(
            "Started disco on light %s for %.1fs every %dms", light_id, duration, speed_ms
        )
        return job

    def _forget(self, job: EffectJob, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if self.jobs.get(job.light_id) is job:
            del self.jobs[job.light_id]

    async def _run_disco(self, job: EffectJob) -> None:
        loop = asyncio.get_running_loop()
        try:
            while True:
                # Ticks are due at fixed offsets from the start, whatever the bridge latency.
                due = job.started_at + (job.ticks + 1) * job.interval
                await asyncio.sleep(max(0.0, due - loop.time()))
                color = job.colors[job.ticks % len(job.colors)]
                job.ticks += 1
                try:
                    await self.bridge.set_light_state(
                        job.light_id,
                        {"on": True, "bri": MAX_BRI, "rgb": list(color), "transitiontime": 0},
                    )
                except Exception as exc:
                    log.warning("Disco step on light %s failed: %s", job.light_id, exc)
                if loop.time() - job.started_at >= job.duration:
                    break
        except asyncio.CancelledError:
            job.state = JobState.cancelled
            raise

        job.state = JobState.completed
        log.info("Disco on light %s completed after %d steps", job.light_id, job.ticks)

    def cancel(self, light_id: str) -> bool:
        job = self.jobs.pop(light_id, None)
        if job is None:
            return False
        cancelled = job.cancel()
        if cancelled:
            log.info("Cancelled effect on light %s", light_id)
        return cancelled

    async def shutdown(self) -> None:
        for job in list(self.jobs.values()):
            job.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.jobs.clear()

    async def flash(
        self,
        light_id: str,
        color: list[int],
        times: int = DEFAULT_FLASH_TIMES,
    ) -> None:
        """Blink a light ``times`` times, leaving it on at ``color``."""
        on_state = {"on": True, "bri": MAX_BRI, "rgb": list(color)}
        for _ in range(times):
            await self.bridge.set_light_state(light_id, dict(on_state))
            await asyncio.sleep(self.flash_interval)
            await self.bridge.set_light_state(light_id, {"on": False})
            await asyncio.sleep(self.flash_interval)
        await self.bridge.set_light_state(light_id, dict(on_state))
