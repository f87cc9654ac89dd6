from fastapi import APIRouter, Form, Request
from fastapi.responses import JSONResponse

from app.security import allow_request, validate_trigger_token
from core.config import load_settings
from core.database import (
    STATUS_VERIFICATION_NEEDED,
    acquire_sync_lock,
    count_synced_items,
    delete_source_session,
    get_account,
    get_source_session,
    release_sync_lock,
    set_account_status,
    update_amazon_credentials,
    update_intervals,
    update_todoist_config,
)
from core.sync.errors import AuthenticationFailed, OriginPageError, SyncLockBusy, VerificationRequired
from worker.main import make_session_manager, run_completion_poll, run_push_cycle

router = APIRouter()

CONNECT_LIMIT = 5
CONNECT_WINDOW_SECONDS = 300


def _unauthorized() -> JSONResponse:
    return JSONResponse({"error": "Unauthorized"}, status_code=401)


def _not_found(account_id: int) -> JSONResponse:
    return JSONResponse({"error": f"Account {account_id} not found"}, status_code=404)


def _busy(account_id: int) -> JSONResponse:
    return JSONResponse({"error": f"A sync for account {account_id} is already running"}, status_code=409)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=400)


@router.get("/accounts/{account_id}")
def account_status(account_id: int, request: Request):
    if not validate_trigger_token(request, load_settings().trigger_token):
        return _unauthorized()

    account = get_account(account_id)
    if not account:
        return _not_found(account_id)

    session = get_source_session(account_id)
    return {
        "id": account["id"],
        "active": bool(account.get("active")),
        "status": account.get("status"),
        "amazon_connected": session is not None,
        "session_renewed_at": session.renewed_at if session else None,
        "push_interval_minutes": account.get("push_interval_minutes"),
        "poll_interval_hours": account.get("poll_interval_hours"),
        "last_push_at": account.get("last_push_at"),
        "last_poll_at": account.get("last_poll_at"),
        "items": count_synced_items(account_id),
    }


@router.post("/accounts/{account_id}/sync")
async def trigger_sync(account_id: int, request: Request, poll: bool = False):
    settings = load_settings()
    if not validate_trigger_token(request, settings.trigger_token):
        return _unauthorized()

    try:
        report = await run_push_cycle(account_id, settings, poll=poll)
    except LookupError:
        return _not_found(account_id)
    except SyncLockBusy:
        return _busy(account_id)
    return report.to_dict()


@router.post("/accounts/{account_id}/poll")
async def trigger_poll(account_id: int, request: Request):
    settings = load_settings()
    if not validate_trigger_token(request, settings.trigger_token):
        return _unauthorized()

    try:
        report = await run_completion_poll(account_id, settings)
    except LookupError:
        return _not_found(account_id)
    except SyncLockBusy:
        return _busy(account_id)
    return report.to_dict()


@router.put("/accounts/{account_id}/intervals")
def set_intervals(
    account_id: int,
    request: Request,
    push_interval_minutes: int = Form(...),
    poll_interval_hours: int = Form(...),
):
    if not validate_trigger_token(request, load_settings().trigger_token):
        return _unauthorized()

    if push_interval_minutes < 1 or poll_interval_hours < 1:
        return _bad_request("Intervals must be positive whole numbers")

    if not get_account(account_id):
        return _not_found(account_id)

    update_intervals(account_id, push_interval_minutes, poll_interval_hours)
    return {"push_interval_minutes": push_interval_minutes, "poll_interval_hours": poll_interval_hours}


@router.put("/accounts/{account_id}/todoist")
def set_todoist(
    account_id: int,
    request: Request,
    token: str = Form(...),
    project_id: str = Form(...),
):
    if not validate_trigger_token(request, load_settings().trigger_token):
        return _unauthorized()

    token = token.strip()
    project_id = project_id.strip()
    if not token or not project_id:
        return _bad_request("Todoist token and project id are required")

    if not get_account(account_id):
        return _not_found(account_id)

    update_todoist_config(account_id, token, project_id)
    return {"todoist_project_id": project_id}


@router.post("/accounts/{account_id}/amazon")
async def connect_amazon(
    account_id: int,
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    code: str = Form(""),
):
    settings = load_settings()
    if not validate_trigger_token(request, settings.trigger_token):
        return _unauthorized()

    client_ip = request.client.host if request.client else "unknown"
    if not allow_request(f"connect:{account_id}:{client_ip}", limit=CONNECT_LIMIT, window_seconds=CONNECT_WINDOW_SECONDS):
        return JSONResponse({"error": "Too many attempts. Please wait and try again."}, status_code=429)

    account = get_account(account_id)
    if not account:
        return _not_found(account_id)

    holder = acquire_sync_lock(account_id, settings.lock_ttl_seconds)
    if not holder:
        return _busy(account_id)

    try:
        manager = make_session_manager(account, settings)
        await manager.authenticate(email.strip(), password, verification_code=code.strip() or None)
    except VerificationRequired:
        set_account_status(account_id, STATUS_VERIFICATION_NEEDED)
        return {"needs_verification": True, "message": "Two-factor authentication code required"}
    except AuthenticationFailed as exc:
        return _bad_request(str(exc))
    except OriginPageError as exc:
        return JSONResponse({"error": f"Amazon sign-in page could not be read: {exc}"}, status_code=502)
    finally:
        release_sync_lock(account_id, holder)

    update_amazon_credentials(account_id, email, password)
    return {"connected": True}


@router.delete("/accounts/{account_id}/amazon")
def disconnect_amazon(account_id: int, request: Request):
    if not validate_trigger_token(request, load_settings().trigger_token):
        return _unauthorized()

    if not get_account(account_id):
        return _not_found(account_id)

    delete_source_session(account_id)
    return {"connected": False}
