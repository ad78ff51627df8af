"""
Command queue - serialises device mode changes and confirms them by polling.

One worker task drains a FIFO queue: each job sends its mode change, then
polls the device status until it reflects the request or the retry budget
runs out. Exactly one outcome is broadcast per job before the next job
starts.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Deque, Optional
from uuid import uuid4

from bgh_bridge.models.command import (
    CommandCompleted,
    CommandFailed,
    CommandJob,
    CommandOutcome,
    CommandPayload,
    EnqueueResult,
    matches_expected,
)
from bgh_bridge.models.credentials import Credentials
from bgh_bridge.models.device import DeviceSnapshot
from bgh_bridge.services.bgh_service import BGHService
from bgh_bridge.services.event_stream import EventBroadcaster
from bgh_bridge.utils.errors import (
    BGHServiceError,
    QueueClosedError,
    StatusUnavailableError,
)
from bgh_bridge.utils.logging import get_logger

logger = get_logger(__name__)

POLL_DELAY_SECONDS = 0.75
MAX_ATTEMPTS = 6
SHUTDOWN_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class PollResult:
    """Last snapshot seen while polling and the attempt it was seen on."""
    device: DeviceSnapshot
    attempts: int
    matched: bool


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded polling policy used to confirm a mode change.

    `sleep` is injectable so tests can run without real delays.
    """
    max_attempts: int = MAX_ATTEMPTS
    delay: float = POLL_DELAY_SECONDS
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    async def poll(
        self,
        fetch: Callable[[], Awaitable[DeviceSnapshot]],
        matches: Callable[[DeviceSnapshot], bool],
        log=None
    ) -> PollResult:
        """
        Fetch until `matches` holds or attempts run out.

        Fetch failures count as attempts and are logged, not raised.

        Returns:
            The matching snapshot, or the last one seen with
            attempts == max_attempts

        Raises:
            StatusUnavailableError: If no fetch ever returned a snapshot
        """
        log = log or logger
        last_device: Optional[DeviceSnapshot] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                device = await fetch()
            except Exception as e:
                log.warning("status_poll_failed", attempt=attempt, error=str(e))
            else:
                last_device = device
                if matches(device):
                    return PollResult(device=device, attempts=attempt, matched=True)
                log.debug("status_not_converged", attempt=attempt)

            if attempt < self.max_attempts:
                await self.sleep(self.delay)

        if last_device is None:
            raise StatusUnavailableError("Could not retrieve the updated device status")

        return PollResult(device=last_device, attempts=self.max_attempts, matched=False)


class CommandQueue:
    """
    Single-worker FIFO queue of device mode changes.

    Handles:
    - Strict arrival-order processing, one vendor mutation at a time
    - Confirmation polling via RetryPolicy
    - Publishing one device-update / command-error event per job
    - Containing per-job crashes so the worker keeps draining
    """

    def __init__(
        self,
        service: BGHService,
        broadcaster: EventBroadcaster,
        retry_policy: Optional[RetryPolicy] = None
    ):
        """
        Initialize command queue.

        Args:
            service: BGH service used to send commands and read status
            broadcaster: Receives one outcome event per job
            retry_policy: Polling policy (defaults to 6 attempts, 750ms apart)
        """
        self.service = service
        self.broadcaster = broadcaster
        self.retry_policy = retry_policy or RetryPolicy()

        self._queue: Deque[CommandJob] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._is_running = False
        self._closed = False

    @property
    def depth(self) -> int:
        """Number of jobs waiting (the job being processed is not counted)."""
        return len(self._queue)

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def is_closed(self) -> bool:
        return self._closed

    def enqueue(
        self,
        home_id: int,
        device_id: int,
        payload: CommandPayload,
        credentials: Optional[Credentials] = None
    ) -> EnqueueResult:
        """
        Queue a mode change and make sure the worker is running.

        Returns immediately; the result is only visible through the
        broadcaster.

        Returns:
            EnqueueResult with the job id and the queue depth after insertion

        Raises:
            QueueClosedError: If the queue is shutting down
        """
        if self._closed:
            raise QueueClosedError("Command queue is shutting down")

        job = CommandJob(
            id=str(uuid4()),
            home_id=home_id,
            device_id=device_id,
            payload=payload,
            enqueued_at=datetime.now(timezone.utc),
            credentials=credentials,
        )
        self._queue.append(job)
        position = len(self._queue)

        logger.info(
            "command_queued",
            job_id=job.id,
            home_id=home_id,
            device_id=device_id,
            queue_depth=position
        )
        self._ensure_worker()

        return EnqueueResult(job_id=job.id, position=position)

    def _ensure_worker(self) -> None:
        if self._is_running:
            return
        self._worker = asyncio.get_running_loop().create_task(self._drain())
        self._is_running = True

    async def _drain(self) -> None:
        """Process queued jobs in order until the queue is empty."""
        try:
            while self._queue:
                job = self._queue.popleft()
                try:
                    outcome = await self._run_job(job)
                except Exception as e:
                    logger.exception("command_job_crashed", job_id=job.id)
                    outcome = CommandFailed(job=job, error=e, attempts=0)
                self._publish(outcome)
        finally:
            self._is_running = False

    async def _run_job(self, job: CommandJob) -> CommandOutcome:
        """
        Send one job's mode change and poll for convergence.

        Vendor errors on the send are terminal for the job; only the status
        read is retried.
        """
        log = logger.bind(job_id=job.id, home_id=job.home_id, device_id=job.device_id)
        log.info("processing_command", mode=job.payload.mode)

        try:
            await self.service.set_device_mode(job.device_id, job.payload, job.credentials)
        except BGHServiceError as e:
            log.error("command_failed", stage="send", code=e.code, error=str(e))
            return CommandFailed(job=job, error=e, attempts=0)

        try:
            result = await self.retry_policy.poll(
                fetch=lambda: self.service.get_device_status(
                    job.home_id, job.device_id, job.credentials
                ),
                matches=lambda device: matches_expected(device, job.payload),
                log=log
            )
        except StatusUnavailableError as e:
            log.error("command_failed", stage="poll", code=e.code, error=str(e))
            return CommandFailed(job=job, error=e, attempts=0)

        log.info("command_completed", attempts=result.attempts, converged=result.matched)
        return CommandCompleted(job=job, device=result.device, attempts=result.attempts)

    def _publish(self, outcome: CommandOutcome) -> None:
        self.broadcaster.publish(outcome.event_name, outcome.to_event())

    async def join(self) -> None:
        """Wait until the worker has drained the queue."""
        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)

    async def shutdown(self, timeout: float = SHUTDOWN_TIMEOUT_SECONDS) -> None:
        """
        Stop accepting jobs, let the in-flight job finish and reject the rest.

        Args:
            timeout: Seconds to wait for the in-flight job before cancelling it
        """
        self._closed = True

        pending = list(self._queue)
        self._queue.clear()
        for job in pending:
            self._publish(CommandFailed(
                job=job,
                error=QueueClosedError("Command queue shut down before the command ran"),
                attempts=0
            ))
        if pending:
            logger.warning("queued_commands_rejected", count=len(pending))

        worker = self._worker
        if worker is None or worker.done():
            return

        try:
            await asyncio.wait_for(asyncio.shield(worker), timeout)
        except asyncio.TimeoutError:
            logger.warning("command_worker_cancelled", timeout=timeout)
            worker.cancel()
            await asyncio.gather(worker, return_exceptions=True)
