"""Per-job pipeline records: which stage a job is in and how it ended."""
import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from . import config
from .errors import InvalidTransitionError, PipelineBusyError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class PipelineStatus(str, Enum):
    """Pipeline status of one job."""
    QUEUED = "queued"
    INGESTING = "ingesting"
    SCREENING_QUEUED = "screening_queued"
    SCREENING = "screening"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    PipelineStatus.QUEUED: {PipelineStatus.INGESTING, PipelineStatus.FAILED},
    PipelineStatus.INGESTING: {
        PipelineStatus.SCREENING_QUEUED,
        PipelineStatus.COMPLETED,
        PipelineStatus.FAILED,
    },
    PipelineStatus.SCREENING_QUEUED: {PipelineStatus.SCREENING, PipelineStatus.FAILED},
    PipelineStatus.SCREENING: {PipelineStatus.COMPLETED, PipelineStatus.FAILED},
    # Explicit re-runs of a finished job
    PipelineStatus.COMPLETED: {PipelineStatus.QUEUED, PipelineStatus.SCREENING_QUEUED},
    PipelineStatus.FAILED: {PipelineStatus.QUEUED, PipelineStatus.SCREENING_QUEUED},
}

IN_FLIGHT = {
    PipelineStatus.QUEUED,
    PipelineStatus.INGESTING,
    PipelineStatus.SCREENING_QUEUED,
    PipelineStatus.SCREENING,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _now() -> str:
    return _utcnow().isoformat()


def new_record(job_id: str, status: PipelineStatus) -> Record:
    now = _now()
    return {
        "job_id": job_id,
        "status": status.value,
        "failed_stage": None,
        "error": None,
        "candidates_ingested": 0,
        "files_failed": 0,
        "candidates_ranked": 0,
        "created_at": now,
        "updated_at": now,
    }


def is_stale(record: Record, stale_after: Optional[float], now: Optional[datetime] = None) -> bool:
    """True when the record has not changed for more than `stale_after` seconds."""
    if stale_after is None:
        return False
    updated_at = datetime.fromisoformat(record["updated_at"])
    return (now or _utcnow()) - updated_at > timedelta(seconds=stale_after)


class PipelineStore:
    """
    Storage-agnostic state machine.

    Subclasses provide `_load` and an atomic read-modify-write `_update`;
    every change to a record goes through `_update`.
    """

    def _load(self, job_id: str) -> Optional[Record]:
        raise NotImplementedError

    def _update(self, job_id: str, apply: Callable[[Optional[Record]], Record]) -> Record:
        raise NotImplementedError

    def get(self, job_id: str) -> Optional[Record]:
        return self._load(job_id)

    def transition(self, job_id: str, status: PipelineStatus, **fields: Any) -> Record:
        """
        Move a job to `status`, creating the record when it does not exist.

        Extra keyword fields (error, counts) are written onto the record.

        Raises:
            InvalidTransitionError: the move is not allowed from the current status
        """

        def apply(record: Optional[Record]) -> Record:
            if record is None:
                record = new_record(job_id, status)
            else:
                current = PipelineStatus(record["status"])
                if status not in ALLOWED_TRANSITIONS[current]:
                    raise InvalidTransitionError(job_id, current.value, status.value)
                record["status"] = status.value
                record["updated_at"] = _now()

            if status in (PipelineStatus.QUEUED, PipelineStatus.SCREENING_QUEUED) and "error" not in fields:
                record["error"] = None
                record["failed_stage"] = None
            record.update(fields)
            return record

        record = self._update(job_id, apply)
        logger.info(f"[Job {job_id}] status={status.value}")
        return record

    def claim(
        self,
        job_id: str,
        stale_after: Optional[float] = None,
        force: bool = False,
        now: Optional[datetime] = None,
    ) -> Record:
        """
        Start a fresh run: atomically reset the record to `queued`.

        A run that is still in flight keeps the job unless it has made no
        progress for `stale_after` seconds or `force` is set.

        Raises:
            PipelineBusyError: a live run holds the job
        """

        def apply(record: Optional[Record]) -> Record:
            if record is not None and PipelineStatus(record["status"]) in IN_FLIGHT:
                if not force and not is_stale(record, stale_after, now):
                    raise PipelineBusyError(job_id, record["status"])
                reason = "forced" if force else "stale"
                logger.warning(
                    f"[Job {job_id}] Abandoning {reason} run in '{record['status']}' "
                    f"(last change {record['updated_at']})"
                )

            fresh = new_record(job_id, PipelineStatus.QUEUED)
            if record is not None:
                fresh["created_at"] = record["created_at"]
            return fresh

        record = self._update(job_id, apply)
        logger.info(f"[Job {job_id}] status={PipelineStatus.QUEUED.value}")
        return record


class InMemoryPipelineStore(PipelineStore):
    """In-memory records (tests and single-process runs)."""

    def __init__(self):
        self._records: Dict[str, Record] = {}
        self._lock = threading.Lock()

    def _load(self, job_id: str) -> Optional[Record]:
        record = self._records.get(job_id)
        return dict(record) if record is not None else None

    def _update(self, job_id: str, apply: Callable[[Optional[Record]], Record]) -> Record:
        with self._lock:
            record = apply(self._load(job_id))
            self._records[job_id] = dict(record)
            return dict(record)


class RedisPipelineStore(PipelineStore):
    """Redis-backed records shared by the API and every worker."""

    def __init__(self, redis_client, ttl: Optional[int] = None):
        self.redis = redis_client
        self.ttl = ttl or config.PIPELINE_STATE_TTL

    @staticmethod
    def _key(job_id: str) -> str:
        return f"pipeline:{job_id}"

    def _load(self, job_id: str) -> Optional[Record]:
        data = self.redis.get(self._key(job_id))
        if data:
            return json.loads(data)
        return None

    def _update(self, job_id: str, apply: Callable[[Optional[Record]], Record]) -> Record:
        """WATCH/MULTI on the record key; redis-py retries when another writer wins."""
        key = self._key(job_id)

        def txn(pipe) -> Record:
            data = pipe.get(key)
            record = apply(json.loads(data) if data else None)
            pipe.multi()
            pipe.setex(key, self.ttl, json.dumps(record))
            return record

        return self.redis.transaction(txn, key, value_from_callable=True)


_pipeline_store: Optional[PipelineStore] = None


def get_pipeline_store() -> PipelineStore:
    """Redis store when enabled and reachable, in-memory otherwise."""
    global _pipeline_store

    if _pipeline_store is None:
        if config.USE_REDIS_STATE:
            import redis

            try:
                client = config.get_redis()
                client.ping()
                _pipeline_store = RedisPipelineStore(client)
                logger.info("Using Redis pipeline store")
            except (redis.RedisError, ValueError) as e:
                # ValueError: malformed REDIS_URL
                logger.warning(f"Redis unavailable ({e}); using in-memory pipeline store")
                _pipeline_store = InMemoryPipelineStore()
        else:
            _pipeline_store = InMemoryPipelineStore()

    return _pipeline_store
