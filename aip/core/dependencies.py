from dataclasses import dataclass, field
import logging
import threading

from aip.config import settings
from aip.database.redis_client import get_redis, redis_available
from aip.database.supabase_client import get_supabase
from aip.modules.credentials.broker import CredentialBroker
from aip.modules.jobs.queue import JobQueue
from aip.modules.provisioning.driver import ProvisioningDriver
from aip.modules.provisioning.output_capturer import OutputCapturer
from aip.modules.provisioning.provisioner import TerraformProvisioner
from aip.modules.runs.service import RunStateTracker

logger = logging.getLogger(__name__)


@dataclass
class WorkerDeps:
    """
    Everything a job consumer needs. Built once at startup and passed explicitly.

    ``stop_event`` is shared by the pool, its consumers and the driver.
    """

    queue: JobQueue
    tracker: RunStateTracker
    broker: CredentialBroker
    driver: ProvisioningDriver
    capturer: OutputCapturer
    stop_event: threading.Event = field(default_factory=threading.Event)


def build_worker_deps() -> WorkerDeps:
    """Wire the production dependencies from settings."""
    queue = JobQueue(
        get_redis(),
        name=settings.job_queue_name,
        wait_seconds=settings.dequeue_timeout_sec,
    )
    stop_event = threading.Event()
    driver = ProvisioningDriver(TerraformProvisioner(settings.terraform_bin), stop_event=stop_event)
    logger.info(f"Blueprint allow-list: {', '.join(settings.get_blueprint_keys())} (modules root {settings.modules_root})")
    return WorkerDeps(
        queue=queue,
        tracker=RunStateTracker(get_supabase()),
        broker=CredentialBroker(),
        driver=driver,
        capturer=OutputCapturer(driver),
        stop_event=stop_event,
    )


def check_connections(deps: WorkerDeps) -> dict:
    """Ping the queue and the store; returns a name -> bool map."""
    checks = {
        "redis": redis_available(deps.queue.client),
        "store": deps.tracker.ping(),
    }
    for name, ok in checks.items():
        if ok:
            logger.info(f"{name} reachable")
        else:
            logger.error(f"{name} not reachable")
    return checks
