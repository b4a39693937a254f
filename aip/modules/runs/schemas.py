from enum import Enum


class RunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Statuses a run may still leave; succeeded/failed are terminal
ACTIVE_STATUSES = [RunStatus.QUEUED.value, RunStatus.RUNNING.value]
