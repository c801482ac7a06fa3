"""Scoped temporary working directories for job invocations."""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


@asynccontextmanager
async def scoped_temp_dir(job_id: str, purpose: str = "transform") -> AsyncIterator[str]:
  """Yield a fresh directory owned by one invocation; it is removed on every exit path."""
  path = tempfile.mkdtemp(prefix=f"{purpose}-{job_id}-")
  logger.debug("Created temp dir %s for job %s", path, job_id)
  try:
    yield path
  finally:
    # Cleanup must not mask the original exception.
    await run_in_threadpool(shutil.rmtree, path, True)
    logger.debug("Removed temp dir %s for job %s", path, job_id)
