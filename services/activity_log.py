"""Simple in-memory, append-only activity log shown to operators."""

from __future__ import annotations

from typing import List

from models.session_models import LogEntry, LogType


class ActivityLog:
	"""Collect operator-facing log lines; never persisted."""

	def __init__(self) -> None:
		self._entries: List[LogEntry] = []

	def add(self, message: str, type: LogType = LogType.DEFAULT) -> LogEntry:
		entry = LogEntry(message=message, type=LogType(type))
		self._entries.append(entry)
		return entry

	def entries(self) -> List[LogEntry]:
		return list(self._entries)

	def clear(self) -> None:
		self._entries.clear()
