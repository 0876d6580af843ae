"""
Batch job scheduling for feed generation using Redis.

A feed run is split into steps: one ``start`` step, one ``batch`` step per
batch number and one ``end`` step. Steps are queued in a Redis list and
executed one at a time by ``FeedJobWorker``, so a run survives process
restarts between steps.
"""

import json
import time
import uuid
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import redis


logger = logging.getLogger(__name__)


STEP_START = "start"
STEP_BATCH = "batch"
STEP_END = "end"


class JobScheduler(ABC):
    """
    Scheduler interface consumed by feed generators.

    Handlers are objects exposing ``handle_start()``,
    ``run_batch(batch_number, filters) -> bool`` and ``handle_end()``.
    """

    def __init__(self):
        self._handlers: Dict[str, Any] = {}

    def register(self, name: str, handler: Any) -> None:
        """Register the handler that executes jobs named ``name``."""
        self._handlers[name] = handler

    def get_handler(self, name: str) -> Optional[Any]:
        return self._handlers.get(name)

    @abstractmethod
    def create_job(self, name: str, filters: Optional[Dict[str, Any]] = None) -> str:
        """Create a job and return its ID."""

    @abstractmethod
    def dispatch(self, job_id: str) -> bool:
        """Queue the first step of a job. Returns False if it was not queued."""


class RedisJobScheduler(JobScheduler):
    """Job scheduler storing job state and step queue in Redis."""

    QUEUE_KEY = "feedjobs:queue"

    def __init__(
        self,
        redis_client: redis.Redis,
        lock_ttl: int = 3600,
        job_ttl: int = 86400
    ):
        """
        Initialize scheduler.

        Args:
            redis_client: Redis client (decode_responses=True)
            lock_ttl: Seconds a run of one job name holds its lock
            job_ttl: Seconds job state is kept
        """
        super().__init__()
        self.redis = redis_client
        self.lock_ttl = lock_ttl
        self.job_ttl = job_ttl

    @staticmethod
    def _state_key(job_id: str) -> str:
        return f"feedjob:{job_id}:state"

    @staticmethod
    def _lock_key(name: str) -> str:
        return f"feedjob:lock:{name}"

    def create_job(self, name: str, filters: Optional[Dict[str, Any]] = None) -> str:
        """
        Create a new job.

        Args:
            name: Job name (the generator name)
            filters: Filters passed to every batch step

        Returns:
            Job ID
        """
        job_id = str(uuid.uuid4())
        now = datetime.utcnow().isoformat()
        state = {
            "job_id": job_id,
            "name": name,
            "status": "queued",
            "filters": json.dumps(filters or {}),
            "batch_number": "0",
            "created_at": now,
            "updated_at": now
        }
        key = self._state_key(job_id)
        self.redis.hset(key, mapping=state)
        self.redis.expire(key, self.job_ttl)
        return job_id

    def dispatch(self, job_id: str) -> bool:
        """
        Queue the start step of a job.

        Only one run per job name may be in flight; a dispatch while another
        run of the same name holds the lock is skipped.
        """
        state = self.get_job_state(job_id)
        if not state:
            logger.warning(f"Cannot dispatch unknown job {job_id}")
            return False

        name = state["name"]
        acquired = self.redis.set(self._lock_key(name), job_id, nx=True, ex=self.lock_ttl)
        if not acquired:
            running = self.redis.get(self._lock_key(name))
            logger.warning(
                f"Job {name} already running | job_id={running} | skipped={job_id}"
            )
            self.update_job_state(job_id, status="skipped")
            return False

        self.update_job_state(job_id, status="dispatched")
        self.enqueue_step(job_id, STEP_START)
        logger.info(f"Job dispatched | name={name} | job_id={job_id}")
        return True

    def enqueue_step(self, job_id: str, step: str, batch_number: int = 0) -> None:
        message = {"job_id": job_id, "step": step, "batch_number": batch_number}
        self.redis.rpush(self.QUEUE_KEY, json.dumps(message))

    def pop_step(self) -> Optional[Dict[str, Any]]:
        raw = self.redis.lpop(self.QUEUE_KEY)
        if raw is None:
            return None
        return json.loads(raw)

    def get_job_state(self, job_id: str) -> Optional[Dict[str, Any]]:
        """
        Get job state.

        Args:
            job_id: Job ID

        Returns:
            Job state dict or None if not found
        """
        state = self.redis.hgetall(self._state_key(job_id))
        if not state:
            return None
        state["filters"] = json.loads(state.get("filters") or "{}")
        state["batch_number"] = int(state.get("batch_number") or 0)
        return state

    def update_job_state(self, job_id: str, **fields: Any) -> None:
        updates = {k: str(v) for k, v in fields.items()}
        updates["updated_at"] = datetime.utcnow().isoformat()
        self.redis.hset(self._state_key(job_id), mapping=updates)

    def renew_lock(self, name: str, job_id: str) -> bool:
        """
        Extend the run lock of a job for another ``lock_ttl`` seconds.

        A lock that already expired is taken again when free.

        Returns:
            False if another run of the same name holds the lock
        """
        key = self._lock_key(name)
        holder = self.redis.get(key)
        if holder == job_id:
            self.redis.expire(key, self.lock_ttl)
            return True
        if holder is None:
            return bool(self.redis.set(key, job_id, nx=True, ex=self.lock_ttl))
        return False

    def release_lock(self, name: str, job_id: str) -> None:
        """Release the run lock if it is still held by this job."""
        key = self._lock_key(name)
        if self.redis.get(key) == job_id:
            self.redis.delete(key)


class FeedJobWorker:
    """Executes queued job steps one at a time."""

    def __init__(self, scheduler: RedisJobScheduler):
        self.scheduler = scheduler

    def run_next(self) -> Optional[str]:
        """
        Execute the next queued step.

        Returns:
            Job ID of the executed step, or None if the queue was empty
        """
        message = self.scheduler.pop_step()
        if message is None:
            return None

        job_id = message["job_id"]
        step = message["step"]
        state = self.scheduler.get_job_state(job_id)
        if not state:
            logger.warning(f"Dropping step {step} for expired job {job_id}")
            return job_id

        name = state["name"]
        handler = self.scheduler.get_handler(name)
        if handler is None:
            logger.error(f"No handler registered for job {name} | job_id={job_id}")
            self._fail(job_id, name, f"No handler registered for {name}")
            return job_id

        if not self.scheduler.renew_lock(name, job_id):
            logger.error(f"Job lost its run lock, aborting | name={name} | job_id={job_id} | step={step}")
            self.scheduler.update_job_state(
                job_id,
                status="failed",
                error="Run lock held by another run",
                finished_at=datetime.utcnow().isoformat()
            )
            return job_id

        try:
            if step == STEP_START:
                self.scheduler.update_job_state(job_id, status="running")
                handler.handle_start()
                self.scheduler.enqueue_step(job_id, STEP_BATCH, 1)
            elif step == STEP_BATCH:
                batch_number = int(message.get("batch_number") or 1)
                has_more = handler.run_batch(batch_number, state["filters"])
                self.scheduler.update_job_state(job_id, batch_number=batch_number)
                if has_more:
                    self.scheduler.enqueue_step(job_id, STEP_BATCH, batch_number + 1)
                else:
                    self.scheduler.enqueue_step(job_id, STEP_END)
            elif step == STEP_END:
                handler.handle_end()
                self.scheduler.update_job_state(
                    job_id,
                    status="done",
                    finished_at=datetime.utcnow().isoformat()
                )
                self.scheduler.release_lock(name, job_id)
                logger.info(f"Job completed | name={name} | job_id={job_id}")
            else:
                raise ValueError(f"Unknown job step: {step}")
        except Exception as e:
            logger.exception(f"Job step failed | name={name} | job_id={job_id} | step={step}")
            self._fail(job_id, name, str(e))

        return job_id

    def _fail(self, job_id: str, name: str, error: str) -> None:
        self.scheduler.update_job_state(
            job_id,
            status="failed",
            error=error,
            finished_at=datetime.utcnow().isoformat()
        )
        self.scheduler.release_lock(name, job_id)

    def run_until_idle(self, max_steps: int = 100000) -> int:
        """
        Execute steps until the queue is empty.

        Returns:
            Number of steps executed
        """
        steps = 0
        while steps < max_steps and self.run_next() is not None:
            steps += 1
        return steps

    def run_forever(self, idle_sleep: float = 2.0, on_idle: Optional[Callable[[], Any]] = None) -> None:
        """
        Worker loop: execute steps, sleeping when the queue is empty.

        Args:
            idle_sleep: Seconds to sleep when no step is queued
            on_idle: Called whenever the queue is empty, e.g. to queue
                scheduled regenerations
        """
        logger.info("Feed job worker started")
        while True:
            if self.run_next() is not None:
                continue
            if on_idle is not None:
                try:
                    on_idle()
                except Exception:
                    logger.exception("Idle callback failed")
            time.sleep(idle_sleep)
