"""Firestore-backed repository for session result media."""

from __future__ import annotations

from google.cloud.firestore import Client as FirestoreClient
from starlette.concurrency import run_in_threadpool

from app.core.firebase import get_firestore_client
from app.jobs.models import now_ms
from app.schema.media import MediaReference, parse_media_reference, serialize_media_reference
from app.storage.sessions_repo import SessionJobStatus, SessionsRepository


class FirestoreSessionsRepository(SessionsRepository):
  """Read and write the pipeline-owned fields of projects/{projectId}/sessions/{sessionId}."""

  def __init__(self, client: FirestoreClient | None = None) -> None:
    self._client = client or get_firestore_client()
    if self._client is None:
      raise RuntimeError("Firestore not initialized")

  def _doc_ref(self, project_id: str, session_id: str):
    return self._client.collection("projects").document(project_id).collection("sessions").document(session_id)

  async def update_result_media(self, project_id: str, session_id: str, media: MediaReference) -> None:
    doc_ref = self._doc_ref(project_id, session_id)
    await run_in_threadpool(doc_ref.update, {"resultMedia": serialize_media_reference(media), "updatedAt": now_ms()})

  async def get_result_media(self, project_id: str, session_id: str) -> MediaReference | None:
    snapshot = await run_in_threadpool(self._doc_ref(project_id, session_id).get)
    if not snapshot.exists:
      return None
    data = snapshot.to_dict() or {}
    # Legacy records are normalized in memory only; the stored shape is left untouched.
    return parse_media_reference(data.get("resultMedia"))

  async def update_job_status(self, project_id: str, session_id: str, job_id: str, status: SessionJobStatus) -> None:
    doc_ref = self._doc_ref(project_id, session_id)
    await run_in_threadpool(doc_ref.update, {"jobId": job_id, "jobStatus": status, "updatedAt": now_ms()})
