import logging

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore import Client as FirestoreClient

from app.config import get_settings

logger = logging.getLogger(__name__)


def initialize_firebase() -> None:
  """Initializes the Firebase Admin SDK."""
  if firebase_admin._apps:
    return

  settings = get_settings()
  if not settings.firebase_project_id:
    logger.warning("Firebase Project ID not set. Firebase Admin SDK not initialized.")
    return

  try:
    if settings.firebase_service_account_json_path:
      cred = credentials.Certificate(settings.firebase_service_account_json_path)
      firebase_admin.initialize_app(cred, {"projectId": settings.firebase_project_id, "storageBucket": settings.storage_bucket})
    else:
      # Use default credentials (e.g. Google Application Default Credentials)
      firebase_admin.initialize_app(options={"projectId": settings.firebase_project_id, "storageBucket": settings.storage_bucket})
    logger.info("Firebase Admin SDK initialized successfully.")
  except (ValueError, OSError) as e:
    logger.error("Failed to initialize Firebase Admin SDK: %s", e)


def get_firestore_client() -> FirestoreClient | None:
  """Returns a Firestore client instance. Lazily initializes if needed."""
  if not firebase_admin._apps:
    initialize_firebase()

  try:
    return firestore.client()
  except ValueError as e:
    logger.error("Failed to get Firestore client: %s", e)
    return None
