"""Activity log and analysis job models."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class LogType(str, Enum):
	DEFAULT = "default"
	INFO = "info"
	ERROR = "error"
	COST = "cost"


@dataclass
class LogEntry:
	"""One operator-visible activity line."""

	message: str
	type: LogType = LogType.DEFAULT
	timestamp: float = field(default_factory=lambda: time.time())

	def to_dict(self) -> Dict[str, Any]:
		return {
			"timestamp": time.strftime("%H:%M:%S", time.localtime(self.timestamp)),
			"message": self.message,
			"type": self.type.value,
		}


@dataclass
class ClassificationResult:
	"""Outcome of classifying one image.

	`to_dict()` renders the wire shape `{success, comment?, error?, tokens?, costUsd?}`.
	"""

	success: bool
	comment: Optional[str] = None
	error: Optional[str] = None
	input_tokens: Optional[int] = None
	output_tokens: Optional[int] = None
	cost_usd: Optional[float] = None

	@classmethod
	def failure(cls, error: str) -> "ClassificationResult":
		return cls(success=False, error=error)

	def to_dict(self) -> Dict[str, Any]:
		payload: Dict[str, Any] = {"success": self.success}
		if self.comment is not None:
			payload["comment"] = self.comment
		if self.error is not None:
			payload["error"] = self.error
		if self.input_tokens is not None or self.output_tokens is not None:
			payload["tokens"] = {"input": self.input_tokens or 0, "output": self.output_tokens or 0}
		if self.cost_usd is not None:
			payload["costUsd"] = self.cost_usd
		return payload


class JobStatus(str, Enum):
	RUNNING = "running"
	STOPPING = "stopping"
	STOPPED = "stopped"
	COMPLETED = "completed"
	FAILED = "failed"


@dataclass
class AnalysisJobState:
	"""Polling view of a background batch analysis."""

	job_id: str
	image_ids: List[str]
	rate_seconds: float
	status: JobStatus = JobStatus.RUNNING
	processed: int = 0
	cost_usd: float = 0.0
	results: Dict[str, ClassificationResult] = field(default_factory=dict)
	error: Optional[str] = None
	started_at: float = field(default_factory=lambda: time.time())
	finished_at: Optional[float] = None

	@property
	def total(self) -> int:
		return len(self.image_ids)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"job_id": self.job_id,
			"status": self.status.value,
			"processed": self.processed,
			"total": self.total,
			"cost_usd": round(self.cost_usd, 6),
			"results": {image_id: result.to_dict() for image_id, result in self.results.items()},
			"error": self.error,
			"started_at": self.started_at,
			"finished_at": self.finished_at,
		}
