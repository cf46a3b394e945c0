"""Login, logout and activity log helpers."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from services.auth_sessions import SESSION_COOKIE, AuthSessionStore

LOGGER = logging.getLogger(__name__)


async def login(request: Request, user: str, password: str) -> Response:
	"""Check the submitted credentials and issue a session cookie on success."""
	sessions: AuthSessionStore = request.app.state.auth_sessions
	if not sessions.configured:
		return JSONResponse({"message": "Server credentials are not configured (.env)."}, status_code=503)
	if not sessions.check_credentials(user.strip(), password):
		LOGGER.info("Rejected login attempt")
		return JSONResponse({"message": "Invalid email or password."}, status_code=401)

	response = RedirectResponse("/dashboard", status_code=303)
	response.set_cookie(
		SESSION_COOKIE,
		sessions.create(),
		max_age=sessions.ttl_seconds,
		httponly=True,
		samesite="lax",
		secure=request.app.state.settings.cookie_secure,
		path="/",
	)
	return response


async def logout(request: Request) -> Response:
	sessions: AuthSessionStore = request.app.state.auth_sessions
	sessions.revoke(request.cookies.get(SESSION_COOKIE))
	response = RedirectResponse("/login", status_code=303)
	response.delete_cookie(SESSION_COOKIE, path="/")
	return response


async def list_logs(request: Request) -> Dict[str, Any]:
	return {"logs": [entry.to_dict() for entry in request.app.state.activity_log.entries()]}


async def clear_logs(request: Request) -> Dict[str, Any]:
	request.app.state.activity_log.clear()
	return {"success": True}
