from __future__ import annotations

import pytest

from app.jobs.progress import JobProgressReporter


@pytest.mark.anyio
async def test_progress_is_clamped_and_monotonic(jobs_repo) -> None:
  reporter = JobProgressReporter(project_id="p1", job_id="job-1", jobs_repo=jobs_repo)

  await reporter("processing", 40, "Working")
  await reporter("late", 10)
  await reporter("overflow", 250)

  assert [update.percentage for update in jobs_repo.progress_updates] == [40.0, 40.0, 100.0]
  assert [update.phase for update in jobs_repo.progress_updates] == ["processing", "late", "overflow"]
  assert jobs_repo.progress_updates[0].message == "Working"
  assert reporter.last_percentage == 100.0


@pytest.mark.anyio
async def test_negative_progress_is_clamped_to_zero(jobs_repo) -> None:
  reporter = JobProgressReporter(project_id="p1", job_id="job-1", jobs_repo=jobs_repo)

  await reporter("start", -5)

  assert jobs_repo.progress_updates[0].percentage == 0.0


@pytest.mark.anyio
async def test_progress_write_failures_are_swallowed(jobs_repo) -> None:
  jobs_repo.fail_progress = True
  reporter = JobProgressReporter(project_id="p1", job_id="job-1", jobs_repo=jobs_repo)

  await reporter("processing", 30)

  assert reporter.last_percentage == 30.0


@pytest.mark.anyio
async def test_seeded_reporter_resumes_from_stored_percentage(jobs_repo) -> None:
  reporter = JobProgressReporter(project_id="p1", job_id="job-1", jobs_repo=jobs_repo, initial_percentage=80)

  await reporter("processing", 20)

  assert jobs_repo.progress_updates[0].percentage == 80.0
