import logging
import threading
from pathlib import Path
from typing import Optional, Union

import redis

from aip.config import settings
from aip.core.dependencies import WorkerDeps
from aip.core.errors import (
    CredentialError,
    DecodeError,
    OutputCaptureError,
    PersistenceError,
    PhaseExecutionError,
    UnsupportedTemplateError,
)
from aip.modules.credentials.schemas import ScopedCredentials
from aip.modules.jobs.schemas import JobAction, JobEnvelope, decode_job
from aip.modules.runs.schemas import RunStatus

logger = logging.getLogger(__name__)

JOB_FAILURES = (CredentialError, UnsupportedTemplateError, PhaseExecutionError)


class JobConsumer:
    """
    Sequential job loop: pop one job, run it to a terminal state, repeat.

    Only credential and provisioning errors fail a run. Malformed payloads
    are dropped, output capture and persistence errors are logged.
    """

    def __init__(
        self,
        deps: WorkerDeps,
        stop_event: Optional[threading.Event] = None,
        name: str = "worker-0",
        error_backoff: Optional[float] = None,
    ):
        self.deps = deps
        self.stop_event = stop_event or deps.stop_event
        self.name = name
        self.error_backoff = settings.queue_error_backoff_sec if error_backoff is None else error_backoff

    def run_forever(self) -> None:
        logger.info(f"{self.name} listening on queue {self.deps.queue.name}")
        while not self.stop_event.is_set():
            try:
                self.poll_once()
            except Exception as e:
                logger.exception(f"{self.name}: unexpected error in job loop: {e}")
                self.stop_event.wait(self.error_backoff)
        logger.info(f"{self.name} stopped")

    def poll_once(self) -> Optional[RunStatus]:
        """One bounded-wait dequeue. Returns the terminal status if a job ran."""
        try:
            payload = self.deps.queue.dequeue()
        except redis.RedisError as e:
            logger.error(f"{self.name}: BLPOP error: {e}")
            self.stop_event.wait(self.error_backoff)
            return None
        if payload is None:
            return None
        return self.handle_payload(payload)

    def handle_payload(self, payload: Union[str, bytes]) -> Optional[RunStatus]:
        try:
            job = decode_job(payload)
        except DecodeError as e:
            logger.error(f"{self.name}: decode job error, dropping payload: {e}")
            return None
        return self.process(job)

    def process(self, job: JobEnvelope) -> RunStatus:
        logger.info(f"{self.name}: job {job.describe()}")
        self._record(self.deps.tracker.mark_running, job.run_id)

        try:
            self.execute(job)
        except JOB_FAILURES as e:
            logger.error(f"job {job.run_id} failed: {e}")
            self._record(self.deps.tracker.mark_failed, job.run_id, str(e))
            return RunStatus.FAILED
        except Exception as e:
            logger.exception(f"job {job.run_id} failed with unexpected error: {e}")
            self._record(self.deps.tracker.mark_failed, job.run_id, f"unexpected error: {e}")
            return RunStatus.FAILED

        logger.info(f"job {job.run_id} completed successfully")
        self._record(self.deps.tracker.mark_succeeded, job.run_id)
        return RunStatus.SUCCEEDED

    def execute(self, job: JobEnvelope) -> None:
        """Resolve the module, assume the role, run the action's phases."""
        if job.action not in (JobAction.PLAN.value, JobAction.APPLY.value):
            # Forward-compatible placeholder: unknown actions (e.g. destroy) succeed as no-ops
            logger.warning(f"unsupported action {job.action!r} for run {job.run_id}, skipping")
            return

        module_dir = self.deps.driver.resolve_module_dir(job.template_key)
        credentials = self.deps.broker.assume_role(job.run_id, job.role_descriptor)

        if job.action == JobAction.PLAN.value:
            self.deps.driver.plan(job, module_dir, credentials)
        else:
            self.deps.driver.apply(job, module_dir, credentials)
            self._capture_outputs(job, module_dir, credentials)

    def _capture_outputs(self, job: JobEnvelope, module_dir: Path, credentials: ScopedCredentials) -> None:
        try:
            outputs = self.deps.capturer.capture(job, module_dir, credentials)
        except OutputCaptureError as e:
            logger.warning(f"run {job.run_id}: output capture failed, keeping previous outputs: {e}")
            return
        except Exception as e:
            logger.exception(f"run {job.run_id}: unexpected output capture error: {e}")
            return
        self._record(self.deps.tracker.update_deployment_outputs, job.run_id, outputs)

    def _record(self, operation, *args) -> None:
        try:
            operation(*args)
        except PersistenceError as e:
            logger.error(str(e))
