"""Session cookie gate for non-public paths."""

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from services.auth_sessions import SESSION_COOKIE

PUBLIC_PATHS = ("/login", "/health")


def is_public_path(path: str) -> bool:
    if path == "/":
        return True
    return any(path == public or path.startswith(f"{public}/") for public in PUBLIC_PATHS)


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """Redirect (pages) or reject with 401 (API) requests lacking a valid session cookie."""

    async def dispatch(self, request: Request, call_next):
        settings = request.app.state.settings
        sessions = request.app.state.auth_sessions
        path = request.url.path
        logged_in = sessions.is_valid(request.cookies.get(SESSION_COOKIE))

        if settings.auth_disabled or is_public_path(path) or logged_in:
            if logged_in and path.startswith("/login") and request.method == "GET":
                return RedirectResponse("/dashboard", status_code=303)
            return await call_next(request)

        if path.startswith("/api/"):
            return JSONResponse({"error": "Not authenticated"}, status_code=401)
        return RedirectResponse("/login", status_code=303)
