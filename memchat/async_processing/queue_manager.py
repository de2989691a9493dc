"""Async queue manager for background processing"""

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Callable, Awaitable

import redis.asyncio as redis

logger = logging.getLogger(__name__)

MEMORY_WRITE_QUEUE = "memory_write"


class QueueManager:
    """
    Manage async job queues

    Jobs are kept in Redis sorted sets (lowest priority score first), so a
    job outlives the request that scheduled it. Workers run as tasks owned
    by the application lifespan.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        poll_interval: float = 1.0,
        result_ttl: int = 3600,
    ):
        self.redis_client = redis_client
        self.poll_interval = poll_interval
        self.result_ttl = result_ttl
        self.workers: Dict[str, Callable[[Dict[str, Any]], Awaitable[Any]]] = {}

    def _queue_key(self, queue_name: str) -> str:
        return f"queue:{queue_name}"

    async def enqueue(
        self,
        queue_name: str,
        job_data: Dict[str, Any],
        priority: int = 0,
    ) -> str:
        """Enqueue a job"""
        job_id = f"{queue_name}:{uuid.uuid4()}"
        job = {
            "id": job_id,
            "queue": queue_name,
            "data": job_data,
            "priority": priority,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "status": "pending",
        }

        await self.redis_client.zadd(
            self._queue_key(queue_name),
            {json.dumps(job): priority},
        )
        return job_id

    def register_worker(self, queue_name: str, worker_func: Callable[[Dict[str, Any]], Awaitable[Any]]):
        """Register a worker function for a queue"""
        self.workers[queue_name] = worker_func

    async def pending(self, queue_name: str) -> int:
        return await self.redis_client.zcard(self._queue_key(queue_name))

    async def get_result(self, job_id: str) -> Optional[Dict[str, Any]]:
        data = await self.redis_client.get(f"job_result:{job_id}")
        return json.loads(data) if data else None

    async def process_next(self, queue_name: str) -> bool:
        """
        Pop and run the next job of a queue

        Returns False when the queue is empty. A failing job is logged and
        recorded as failed; it never propagates.
        """
        worker = self.workers.get(queue_name)
        if worker is None:
            raise ValueError(f"No worker registered for queue {queue_name}")

        popped = await self.redis_client.zpopmin(self._queue_key(queue_name), 1)
        if not popped:
            return False

        job_json, _ = popped[0]
        job = json.loads(job_json)

        try:
            await worker(job["data"])
            job["status"] = "completed"
        except Exception as e:
            logger.exception("Background job %s failed", job["id"])
            job["status"] = "failed"
            job["error"] = str(e)

        await self.redis_client.setex(
            f"job_result:{job['id']}",
            self.result_ttl,
            json.dumps(job),
        )
        return True

    async def process_queue(self, queue_name: str):
        """Process jobs from a queue until cancelled"""
        logger.info("Worker started for queue %s", queue_name)
        while True:
            try:
                processed = await self.process_next(queue_name)
            except Exception:
                logger.exception("Queue %s polling failed", queue_name)
                processed = False

            if not processed:
                await asyncio.sleep(self.poll_interval)
