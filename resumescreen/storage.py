"""Raw resume files in Google Cloud Storage."""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from resumescreen import config
from resumescreen.errors import ConfigurationError
from resumescreen.repository import job_prefix

logger = logging.getLogger(__name__)


class ResumeStorage:
    """
    Lists and downloads the resume files uploaded for a job.

    Keys are blob names relative to GCS_RESUME_PREFIX, so a key always
    starts with "<jobId>-". The blocking GCS client runs in worker threads.
    """

    def __init__(self, client=None, bucket_name: Optional[str] = None, folder: Optional[str] = None):
        self._client = client
        self.bucket_name = bucket_name if bucket_name is not None else config.GCS_RESUME_BUCKET
        folder = config.GCS_RESUME_PREFIX if folder is None else folder
        self.folder = folder.strip("/")

    def _bucket(self):
        if not self.bucket_name:
            raise ConfigurationError("GCS_RESUME_BUCKET not configured")
        if self._client is None:
            self._client = config.get_storage_client()
        return self._client.bucket(self.bucket_name)

    def _blob_name(self, key: str) -> str:
        return f"{self.folder}/{key}" if self.folder else key

    def _key(self, blob_name: str) -> str:
        if self.folder and blob_name.startswith(f"{self.folder}/"):
            return blob_name[len(self.folder) + 1:]
        return blob_name

    def _list_keys_sync(self, job_id: str) -> List[str]:
        bucket = self._bucket()
        prefix = self._blob_name(job_prefix(job_id))
        blobs = self._client.list_blobs(bucket, prefix=prefix)
        # Skip "directory" placeholder objects
        return [self._key(blob.name) for blob in blobs if not blob.name.endswith("/")]

    def _get_bytes_sync(self, key: str) -> bytes:
        blob = self._bucket().blob(self._blob_name(key))
        return blob.download_as_bytes()

    async def list_keys(self, job_id: str) -> List[str]:
        """Keys of every file uploaded for the job, in listing order (empty if none)."""
        keys = await asyncio.to_thread(self._list_keys_sync, job_id)
        logger.info(f"[Job {job_id}] Found {len(keys)} resume files")
        return keys

    async def get_bytes(self, key: str) -> bytes:
        data = await asyncio.to_thread(self._get_bytes_sync, key)
        logger.debug(f"Downloaded {key} ({len(data)} bytes)")
        return data
