import logging
import threading
from typing import List, Optional

from aip.config import settings
from aip.core.dependencies import WorkerDeps
from aip.modules.provisioning import process_registry
from aip.worker.consumer import JobConsumer

logger = logging.getLogger(__name__)


class WorkerPool:
    """
    N independent consumers on one queue.

    Each consumer is sequential; the queue's atomic pop is the only
    coordination between them.
    """

    def __init__(self, deps: WorkerDeps, concurrency: Optional[int] = None):
        self.deps = deps
        self.concurrency = max(1, concurrency or settings.worker_concurrency)
        self.stop_event = deps.stop_event
        self.consumers: List[JobConsumer] = []
        self._threads: List[threading.Thread] = []

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("worker pool already started")
        self.stop_event.clear()
        for i in range(self.concurrency):
            consumer = JobConsumer(self.deps, stop_event=self.stop_event, name=f"worker-{i}")
            thread = threading.Thread(target=consumer.run_forever, name=consumer.name, daemon=True)
            self.consumers.append(consumer)
            self._threads.append(thread)
            thread.start()
        logger.info(f"Started {self.concurrency} worker(s) on queue {self.deps.queue.name}")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal consumers to stop, kill in-flight terraform processes, wait for threads."""
        self.stop_event.set()
        stopped = process_registry.terminate_all()
        if stopped:
            logger.warning(f"Terminated {stopped} in-flight terraform process(es) on shutdown")
        for thread in self._threads:
            thread.join(timeout)
        # A consumer may have launched a phase just before it saw the event
        stragglers = process_registry.terminate_all()
        if stragglers:
            logger.warning(f"Terminated {stragglers} terraform process(es) started during shutdown")
        self._threads = []
        self.consumers = []
        logger.info("Worker pool stopped")

    def is_alive(self) -> bool:
        return bool(self._threads) and all(t.is_alive() for t in self._threads)

    def wait(self) -> None:
        """Block until stop() is called from another thread or a signal handler."""
        while not self.stop_event.wait(1.0):
            pass
