"""Repository factories used by services and route dependencies."""

from __future__ import annotations

from app.storage.firestore_jobs_repo import FirestoreJobsRepository
from app.storage.firestore_sessions_repo import FirestoreSessionsRepository
from app.storage.jobs_repo import JobsRepository
from app.storage.sessions_repo import SessionsRepository


def get_jobs_repo() -> JobsRepository:
  return FirestoreJobsRepository()


def get_sessions_repo() -> SessionsRepository:
  return FirestoreSessionsRepository()
