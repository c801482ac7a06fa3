import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import get_settings
from app.core.firebase import initialize_firebase
from app.core.logging import initialize_logging
from app.services.storage_client import build_storage_client


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging, Firebase and the output bucket before serving tasks."""
  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  initialize_logging(settings)
  logger.info("Starting transform service environment=%s", settings.environment)

  initialize_firebase()
  # Only creates the bucket against the storage emulator.
  try:
    storage_client = build_storage_client(settings)
    await storage_client.ensure_bucket()
    logger.info("Output bucket ensured: %s", storage_client.bucket_name)
  except Exception as exc:  # noqa: BLE001
    logger.warning("Failed to ensure output bucket at startup: %s", exc)

  yield

  logger.info("Transform service shutting down.")
