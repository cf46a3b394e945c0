"""In-memory registry of background batch-analysis jobs."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, List, Optional
from uuid import uuid4

from dal.asset_store import AssetStore
from models.image_record import ImageMetadata
from models.session_models import AnalysisJobState, ClassificationResult, JobStatus, LogType
from services.activity_log import ActivityLog
from services.analysis_loop import BatchImage, CancellationToken, Classifier, iter_batch_analysis

LOGGER = logging.getLogger(__name__)

# Finished jobs kept for polling; older ones are dropped when a new job starts.
MAX_FINISHED_JOBS = 20


class JobConflictError(RuntimeError):
	"""Raised when a job is started while another one is still running."""


class AnalysisJobStore:
	"""Start, poll and stop batch analyses of stored images.

	Only one job runs at a time. Each successful finding is written back to
	the image's stored metadata comment.
	"""

	def __init__(self, store: AssetStore, classifier: Classifier, activity_log: ActivityLog) -> None:
		self._store = store
		self._classifier = classifier
		self._log = activity_log
		self._jobs: Dict[str, AnalysisJobState] = {}
		self._tokens: Dict[str, CancellationToken] = {}
		self._tasks: Dict[str, asyncio.Task] = {}

	def start(self, image_ids: List[str], rate_seconds: float) -> AnalysisJobState:
		"""Create a job and schedule it on the running event loop."""
		if not image_ids:
			raise ValueError("No images provided")
		if rate_seconds < 0:
			raise ValueError("rateSeconds must be non-negative")
		if any(state.status in (JobStatus.RUNNING, JobStatus.STOPPING) for state in self._jobs.values()):
			raise JobConflictError("An analysis job is already running")

		self._prune_finished()
		job_id = uuid4().hex
		state = AnalysisJobState(job_id=job_id, image_ids=list(image_ids), rate_seconds=rate_seconds)
		self._jobs[job_id] = state
		self._tokens[job_id] = CancellationToken()
		self._tasks[job_id] = asyncio.create_task(self._run(state))
		return state

	def get(self, job_id: str) -> AnalysisJobState:
		"""Return a job or raise KeyError if missing."""
		state = self._jobs.get(job_id)
		if state is None:
			raise KeyError(f"Job {job_id} not found")
		return state

	def request_stop(self, job_id: str) -> AnalysisJobState:
		state = self.get(job_id)
		if state.status is JobStatus.RUNNING:
			self._tokens[job_id].request_stop()
			state.status = JobStatus.STOPPING
			self._log.add("Requested stop of analysis", LogType.INFO)
		return state

	async def wait(self, job_id: str) -> AnalysisJobState:
		"""Await a job's task; mainly useful to tests and shutdown."""
		task = self._tasks.get(job_id)
		if task is not None:
			await task
		return self.get(job_id)

	async def shutdown(self) -> None:
		for job_id, task in list(self._tasks.items()):
			if not task.done():
				self._tokens[job_id].request_stop()
				task.cancel()
				try:
					await task
				except asyncio.CancelledError:
					pass
			# A task cancelled before its first step never reaches `_run`'s handlers
			state = self._jobs.get(job_id)
			if state is not None and state.finished_at is None:
				state.status = JobStatus.STOPPED
				state.finished_at = time.time()
			self._tokens.pop(job_id, None)
			self._tasks.pop(job_id, None)

	def _prune_finished(self) -> None:
		finished = [job_id for job_id, state in self._jobs.items() if state.finished_at is not None]
		for job_id in finished[:-MAX_FINISHED_JOBS]:
			del self._jobs[job_id]

	async def _run(self, state: AnalysisJobState) -> None:
		token = self._tokens[state.job_id]
		images = [BatchImage(id=image_id) for image_id in state.image_ids]
		self._log.add(f"Starting batch analysis of {state.total} images", LogType.INFO)
		try:
			async for event in iter_batch_analysis(
				images,
				self._classifier,
				rate_seconds=state.rate_seconds,
				cancel_token=token,
				loader=self._store.get,
			):
				state.processed = event.current
				state.results[event.image_id] = event.result
				await self._record(event.current, event.total, event.image_id, event.result, state)
		except asyncio.CancelledError:
			state.status = JobStatus.STOPPED
			self._log.add("Analysis cancelled", LogType.INFO)
			raise
		except Exception as exc:  # pylint: disable=broad-exception-caught
			LOGGER.exception("Analysis job %s failed", state.job_id)
			state.status = JobStatus.FAILED
			state.error = str(exc)
			self._log.add(f"Batch analysis failed: {exc}", LogType.ERROR)
		else:
			if token.stop_requested and len(state.results) < state.total:
				state.status = JobStatus.STOPPED
				self._log.add("Analysis stopped by user", LogType.INFO)
			else:
				state.status = JobStatus.COMPLETED
				self._log.add("Batch analysis completed", LogType.INFO)
		finally:
			state.finished_at = time.time()
			self._tokens.pop(state.job_id, None)
			self._tasks.pop(state.job_id, None)

	async def _record(
		self, current: int, total: int, image_id: str, result: ClassificationResult, state: AnalysisJobState
	) -> None:
		if not result.success:
			self._log.add(f"Image {current}: Error - {result.error}", LogType.ERROR)
			return

		name = await self._save_comment(image_id, result.comment or "")
		self._log.add(f'Image {current}/{total}: "{name}" completed', LogType.INFO)
		if result.cost_usd:
			state.cost_usd += result.cost_usd
			self._log.add(f"{result.cost_usd:.6f}", LogType.COST)

	async def _save_comment(self, image_id: str, comment: str) -> str:
		"""Merge the new comment into stored metadata and return the display name."""
		raw: Optional[dict] = await self._store.get_meta(image_id)
		metadata = ImageMetadata.from_dict(raw) if raw else ImageMetadata(name=image_id)
		metadata.comment = comment
		try:
			await self._store.put_meta(image_id, metadata.to_dict())
		except LookupError as exc:
			LOGGER.warning("Could not save comment for %s: %s", image_id, exc)
		return metadata.name or image_id
