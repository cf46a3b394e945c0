"""FastAPI routes for login sessions and the activity log."""

from fastapi import APIRouter, Form, HTTPException, Request
from fastapi.responses import HTMLResponse

from controllers.session_controller import clear_logs, list_logs, login, logout

router = APIRouter()

LOGIN_FORM = """<!doctype html>
<html><head><title>Inspector login</title></head>
<body>
<form method="post" action="/login">
<input name="email" type="text" placeholder="Email" required>
<input name="password" type="password" placeholder="Password" required>
<button type="submit">Sign in</button>
</form>
</body></html>
"""


@router.get("/login", include_in_schema=False)
async def login_page():
	return HTMLResponse(LOGIN_FORM)


@router.post("/login")
async def login_route(request: Request, email: str = Form(""), password: str = Form("")):
	try:
		return await login(request, email, password)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/logout")
async def logout_route(request: Request):
	return await logout(request)


@router.get("/api/logs")
async def list_logs_route(request: Request):
	return await list_logs(request)


@router.delete("/api/logs")
async def clear_logs_route(request: Request):
	return await clear_logs(request)
