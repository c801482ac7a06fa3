"""Firestore-backed repository for transform pipeline jobs."""

from __future__ import annotations

import logging
from typing import Any

from firebase_admin import firestore
from google.cloud.firestore import Client as FirestoreClient
from starlette.concurrency import run_in_threadpool

from app.core.firebase import get_firestore_client
from app.jobs.models import TERMINAL_STATUSES, Job, JobError, JobOutput, JobProgress, now_ms
from app.storage.documents import error_to_document, job_from_document, job_to_document, output_to_document, progress_to_document
from app.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)


class FirestoreJobsRepository(JobsRepository):
  """Persist jobs under projects/{projectId}/jobs/{jobId}.

  Status-guarded updates run inside Firestore transactions on a worker thread
  because the admin SDK is synchronous.
  """

  def __init__(self, client: FirestoreClient | None = None) -> None:
    self._client = client or get_firestore_client()
    if self._client is None:
      raise RuntimeError("Firestore not initialized")

  def _doc_ref(self, project_id: str, job_id: str) -> firestore.DocumentReference:
    return self._client.collection("projects").document(project_id).collection("jobs").document(job_id)

  async def create(self, job: Job) -> None:
    doc_ref = self._doc_ref(job.project_id, job.job_id)
    await run_in_threadpool(doc_ref.create, job_to_document(job))

  async def get(self, project_id: str, job_id: str) -> Job | None:
    snapshot = await run_in_threadpool(self._doc_ref(project_id, job_id).get)
    if not snapshot.exists:
      return None
    return job_from_document(job_id, snapshot.to_dict() or {})

  async def transition_to_running(self, project_id: str, job_id: str) -> Job | None:
    def _apply(data: dict[str, Any]) -> dict[str, Any]:
      now = now_ms()
      updates: dict[str, Any] = {"status": "running", "attempts": int(data.get("attempts", 0)) + 1, "updatedAt": now}
      # Keep the first start time across re-deliveries.
      if not data.get("startedAt"):
        updates["startedAt"] = now
      return updates

    return await run_in_threadpool(self._guarded_update_sync, project_id, job_id, _apply)

  async def finalize_success(self, project_id: str, job_id: str, output: JobOutput) -> Job | None:
    def _apply(_data: dict[str, Any]) -> dict[str, Any]:
      now = now_ms()
      return {"status": "succeeded", "output": output_to_document(output), "error": None, "progress": None, "completedAt": now, "updatedAt": now}

    return await run_in_threadpool(self._guarded_update_sync, project_id, job_id, _apply)

  async def finalize_failure(self, project_id: str, job_id: str, error: JobError) -> Job | None:
    def _apply(_data: dict[str, Any]) -> dict[str, Any]:
      now = now_ms()
      return {"status": "failed", "error": error_to_document(error), "output": None, "progress": None, "completedAt": now, "updatedAt": now}

    return await run_in_threadpool(self._guarded_update_sync, project_id, job_id, _apply)

  async def record_progress(self, project_id: str, job_id: str, progress: JobProgress) -> None:
    def _apply(_data: dict[str, Any]) -> dict[str, Any]:
      return {"progress": progress_to_document(progress), "updatedAt": now_ms()}

    await run_in_threadpool(self._guarded_update_sync, project_id, job_id, _apply)

  def _guarded_update_sync(self, project_id: str, job_id: str, build_updates: Any) -> Job | None:
    """Apply updates in a transaction unless the job is missing or terminal."""
    doc_ref = self._doc_ref(project_id, job_id)
    transaction = self._client.transaction()

    @firestore.transactional
    def update_in_transaction(transaction: firestore.Transaction, doc_ref: firestore.DocumentReference) -> Job | None:
      snapshot = doc_ref.get(transaction=transaction)
      if not snapshot.exists:
        logger.warning("Job %s not found in project %s", job_id, project_id)
        return None

      data = snapshot.to_dict() or {}
      if data.get("status") in TERMINAL_STATUSES:
        logger.info("Job %s already %s; skipping update.", job_id, data.get("status"))
        return None

      updates = build_updates(data)
      transaction.update(doc_ref, updates)
      return job_from_document(job_id, {**data, **updates})

    return update_in_transaction(transaction, doc_ref)
