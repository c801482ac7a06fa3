"""Firestore session repository against a mocked client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from app.schema.media import MediaReference
from app.storage.firestore_sessions_repo import FirestoreSessionsRepository


def _client_with_document(data: dict | None) -> tuple[MagicMock, MagicMock]:
  client = MagicMock()
  doc_ref = client.collection.return_value.document.return_value.collection.return_value.document.return_value
  snapshot = MagicMock()
  snapshot.exists = data is not None
  snapshot.to_dict.return_value = data
  doc_ref.get.return_value = snapshot
  return client, doc_ref


@pytest.mark.anyio
async def test_legacy_result_media_is_normalized_without_rewriting() -> None:
  client, doc_ref = _client_with_document({"resultMedia": {"stepId": "create", "assetId": "x", "url": "u", "createdAt": 123}})
  repo = FirestoreSessionsRepository(client)

  media = await repo.get_result_media("p1", "s1")

  assert media == MediaReference(media_asset_id="x", url="u", file_path=None, display_name="Untitled")
  doc_ref.update.assert_not_called()
  doc_ref.set.assert_not_called()


@pytest.mark.anyio
async def test_missing_session_has_no_result_media() -> None:
  client, _ = _client_with_document(None)
  assert await FirestoreSessionsRepository(client).get_result_media("p1", "s1") is None


@pytest.mark.anyio
async def test_result_media_is_written_in_current_shape() -> None:
  client, doc_ref = _client_with_document({})
  repo = FirestoreSessionsRepository(client)

  await repo.update_result_media("p1", "s1", MediaReference(media_asset_id="s1-output", url="https://storage.test/o.jpg", file_path="projects/p1/sessions/s1/output.jpg", display_name="Result"))
  await repo.update_job_status("p1", "s1", "job-1", "completed")

  client.collection.assert_called_with("projects")
  first, second = (call.args[0] for call in doc_ref.update.call_args_list)
  assert first["resultMedia"] == {"mediaAssetId": "s1-output", "url": "https://storage.test/o.jpg", "filePath": "projects/p1/sessions/s1/output.jpg", "displayName": "Result"}
  assert second["jobId"] == "job-1"
  assert second["jobStatus"] == "completed"
