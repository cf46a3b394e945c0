"""Simple in-memory store for login sessions."""

from __future__ import annotations

import hmac
import secrets
import time
from typing import Dict, Optional

SESSION_COOKIE = "inspector_session"
SESSION_TTL_SECONDS = 60 * 60 * 8


class AuthSessionStore:
	"""Issue and validate opaque session tokens against fixed credentials."""

	def __init__(self, admin_user: str, admin_pass: str, ttl_seconds: int = SESSION_TTL_SECONDS) -> None:
		self._admin_user = admin_user
		self._admin_pass = admin_pass
		self.ttl_seconds = ttl_seconds
		self._sessions: Dict[str, float] = {}

	@property
	def configured(self) -> bool:
		return bool(self._admin_user and self._admin_pass)

	def check_credentials(self, user: str, password: str) -> bool:
		if not self.configured:
			return False
		user_ok = hmac.compare_digest(user.encode("utf-8"), self._admin_user.encode("utf-8"))
		pass_ok = hmac.compare_digest(password.encode("utf-8"), self._admin_pass.encode("utf-8"))
		return user_ok and pass_ok

	def create(self) -> str:
		"""Return a new token valid for `ttl_seconds`."""
		token = secrets.token_urlsafe(32)
		self._sessions[token] = time.time() + self.ttl_seconds
		return token

	def is_valid(self, token: Optional[str]) -> bool:
		if not token:
			return False
		expires_at = self._sessions.get(token)
		if expires_at is None:
			return False
		if expires_at < time.time():
			del self._sessions[token]
			return False
		return True

	def revoke(self, token: Optional[str]) -> None:
		if token:
			self._sessions.pop(token, None)
