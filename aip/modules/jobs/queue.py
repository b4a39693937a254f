import logging
from typing import Optional, Union

import redis

from aip.modules.jobs.schemas import JobEnvelope

logger = logging.getLogger(__name__)


class JobQueue:
    """FIFO job list in Redis: producers RPUSH, workers BLPOP."""

    def __init__(self, client: redis.Redis, name: str = "aip:jobs", wait_seconds: int = 5):
        self.client = client
        self.name = name
        self.wait_seconds = wait_seconds

    def enqueue(self, job: JobEnvelope) -> int:
        """Push one serialized envelope to the tail of the queue. Returns the new length."""
        return self.client.rpush(self.name, job.to_wire())

    def dequeue(self) -> Optional[Union[str, bytes]]:
        """
        Block for up to ``wait_seconds`` for the next payload.

        Returns the raw payload, or None when the wait timed out. Transport
        errors propagate as ``redis.RedisError``.
        """
        item = self.client.blpop([self.name], timeout=self.wait_seconds)
        if item is None:
            return None
        _, payload = item
        return payload

    def depth(self) -> int:
        return self.client.llen(self.name)
