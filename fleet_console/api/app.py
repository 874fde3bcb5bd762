"""
Fleet Console API — FastAPI endpoints.

The browser-facing surface of the console. Every view resolves the
session first; when the guard fires, the recorded side effects (cookie
expiry for each path/domain variant, storage wipe, navigation) are
rendered as a 303 redirect instead of a body.

- Session: who am I, logout
- Fleet: server list, server detail, console credentials, reachability
- Actions: power, password reset, console toggle
- Destructive workflows: reinstall and snapshot restore
- Admin: users, groups, sync, API key status
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import BaseModel

from fleet_console.admin.users import AdminUserService, delete_subject
from fleet_console.config import ConsoleConfig
from fleet_console.errors import WorkflowStateError
from fleet_console.execution.executor import ActionExecutor, InFlightRegistry
from fleet_console.fleet.store import FleetStore
from fleet_console.models.action import (
    ActionKind,
    ActionRequest,
    Confirmation,
    DESTRUCTIVE_ACTIONS,
)
from fleet_console.models.identity import Identity, is_admin
from fleet_console.models.outcomes import Ack, AuthFailure, AuthRemedy, Failure, FailureKind
from fleet_console.reachability.poller import StatusPoller
from fleet_console.session.context import BrowserSession
from fleet_console.session.guard import SessionGuard, session_evidence
from fleet_console.transport.client import RemoteAPI, build_http_client
from fleet_console.workflow.destructive import DestructiveWorkflow, WorkflowState
from fleet_console.workflow.reinstall import ReinstallWorkflow
from fleet_console.workflow.snapshot import SnapshotRestoreWorkflow

logger = logging.getLogger(__name__)


# --- Request Models ---

class ActionTriggerRequest(BaseModel):
    confirmed: bool = False


class SelectionRequest(BaseModel):
    reinstall_type: Optional[str] = None
    os_app_id: Optional[int] = None
    authentication: Optional[str] = None
    ssh_key: Optional[str] = None
    snapshot_name: Optional[str] = None


class CommitRequest(BaseModel):
    confirmation: str = ""


class UserCreateRequest(BaseModel):
    email: str = ""
    groups: List[str] = []


class UserGroupsRequest(BaseModel):
    groups: List[str]


# --- Per-session state ---

WORKFLOWS = {
    "reinstall": ReinstallWorkflow,
    "restore": SnapshotRestoreWorkflow,
}


class ConsoleSession:
    """Workflow state and in-flight flags for one operator session."""

    def __init__(self):
        self.in_flight = InFlightRegistry()
        self.workflows: Dict[Tuple[int, str], DestructiveWorkflow] = {}
        self.last_used = 0.0


class SessionRegistry:
    """
    Console sessions keyed by their session cookie.

    Sessions idle for longer than ``ttl_seconds`` are evicted on the next
    lookup, unless an action is still in flight for them.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, ConsoleSession] = {}

    def get(self, key: str) -> ConsoleSession:
        now = self._clock()
        self._evict_idle(now)
        session = self._sessions.get(key)
        if session is None:
            session = self._sessions[key] = ConsoleSession()
        session.last_used = now
        return session

    def drop(self, key: Optional[str]) -> None:
        if key is not None:
            self._sessions.pop(key, None)

    def _evict_idle(self, now: float) -> None:
        idle = [
            key for key, session in self._sessions.items()
            if now - session.last_used > self.ttl_seconds and not len(session.in_flight)
        ]
        for key in idle:
            logger.info("Evicting idle console session")
            del self._sessions[key]

    def __contains__(self, key: str) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


class RequestContext:
    """Session guard, remote API and client side effects for one request."""

    def __init__(self, request: Request, client: httpx.AsyncClient, config: ConsoleConfig):
        self.config = config
        self.browser = BrowserSession(
            cookies=request.cookies,
            hostname=request.url.hostname or "localhost",
        )
        self.api = RemoteAPI(client, self.browser)
        self.guard = SessionGuard(self.api, self.browser, config)
        self.session_key = session_evidence(request.cookies, config.session_cookie_marker)


# --- Rendering ---

_FAILURE_STATUS = {
    FailureKind.VALIDATION: 400,
    FailureKind.TRANSPORT: 502,
    FailureKind.PROTOCOL: 502,
    FailureKind.IN_FLIGHT: 409,
}


def redirect_response(browser: BrowserSession) -> RedirectResponse:
    response = RedirectResponse(browser.location or "/", status_code=303)
    for cookie in browser.expired_cookies:
        response.delete_cookie(cookie.name, path=cookie.path, domain=cookie.domain)
    if browser.storage_cleared:
        response.headers["Clear-Site-Data"] = '"cookies", "storage"'
    return response


def failure_response(failure: Failure) -> JSONResponse:
    status = getattr(failure, "status_code", None)
    if failure.kind != FailureKind.REMOTE or not status:
        status = _FAILURE_STATUS.get(failure.kind, 502)
    body = {"error": failure.message, "kind": failure.kind.value}
    if failure.kind == FailureKind.VALIDATION:
        body["field"] = getattr(failure, "field", None)
    return JSONResponse(body, status_code=status)


def workflow_view(workflow: DestructiveWorkflow) -> dict:
    view: Dict[str, Any] = {
        "kind": workflow.kind.value,
        "server_id": workflow.server_id,
        "state": workflow.state.value,
        "last_error": workflow.last_error,
        "rejection": workflow.rejection,
        "confirmation_prompt": f'Type "{workflow.confirmation_token}" to proceed',
    }
    if isinstance(workflow, ReinstallWorkflow):
        view.update({
            "reinstall_type": workflow.reinstall_type.value,
            "options": [o.model_dump() for o in workflow.active_options],
            "os_app_id": workflow.os_app_id,
            "authentication": workflow.authentication.value,
            "ssh_key": workflow.ssh_key,
        })
    elif isinstance(workflow, SnapshotRestoreWorkflow):
        view.update({
            "options": [s.model_dump() for s in workflow.snapshots],
            "snapshot_name": workflow.selected_snapshot,
        })
    if workflow.state == WorkflowState.CONFIRMING:
        view["summary"] = workflow.summary()
    return view


# --- Application Factory ---

def create_app(
    config: Optional[ConsoleConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    registry: Optional[SessionRegistry] = None,
) -> FastAPI:
    """Create and configure the console application."""

    cfg = config or ConsoleConfig()
    sessions = registry if registry is not None else SessionRegistry(cfg.session_ttl_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.http_client = build_http_client(cfg, transport)
        try:
            yield
        finally:
            await app.state.http_client.aclose()

    app = FastAPI(
        title="Fleet Console",
        description="Guarded remote actions for a fleet of virtual servers",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = cfg
    app.state.sessions = sessions

    def context(request: Request) -> RequestContext:
        return RequestContext(request, request.app.state.http_client, cfg)

    def render(ctx: RequestContext, payload: Any) -> Response:
        if ctx.browser.redirected:
            fired = ctx.guard.fired
            if fired is not None and fired.remedy != AuthRemedy.DASHBOARD:
                sessions.drop(ctx.session_key)
            return redirect_response(ctx.browser)
        if isinstance(payload, Failure):
            return failure_response(payload)
        return JSONResponse(jsonable_encoder(payload))

    async def gate(ctx: RequestContext) -> Optional[Response]:
        identity = await ctx.guard.resolve_identity()
        if isinstance(identity, AuthFailure):
            return render(ctx, identity)
        return None

    def session_for(ctx: RequestContext) -> ConsoleSession:
        if ctx.session_key is None:
            raise HTTPException(401, "A console session cookie is required")
        return sessions.get(ctx.session_key)

    def executor_for(ctx: RequestContext) -> ActionExecutor:
        return ActionExecutor(ctx.api, ctx.guard, session_for(ctx).in_flight)

    def workflow_for(
        ctx: RequestContext, server_id: int, name: str, server_name: Optional[str] = None
    ) -> DestructiveWorkflow:
        if name not in WORKFLOWS:
            raise HTTPException(404, "Workflow not found")
        state = session_for(ctx)
        key = (server_id, name)
        workflow = state.workflows.get(key)
        if workflow is None:
            workflow = WORKFLOWS[name](server_id, server_name or str(server_id), executor_for(ctx))
            state.workflows[key] = workflow
        else:
            # Rebind to this request's guard so redirects render here
            workflow.executor = executor_for(ctx)
            if server_name:
                workflow.server_name = server_name
        return workflow

    # === SESSION ===

    @app.get("/console/me")
    async def who_am_i(ctx: RequestContext = Depends(context)):
        """The resolved identity for this session."""
        identity = await ctx.guard.resolve_identity()
        if isinstance(identity, Identity):
            return render(ctx, {
                "email": identity.email,
                "groups": sorted(identity.groups),
                "is_admin": is_admin(identity, cfg.admin_groups),
            })
        return render(ctx, identity)

    @app.post("/console/logout")
    async def logout(ctx: RequestContext = Depends(context)):
        sessions.drop(ctx.session_key)
        ctx.guard.logout()
        return redirect_response(ctx.browser)

    # === FLEET ===

    @app.get("/console/servers")
    async def list_servers(ctx: RequestContext = Depends(context)):
        """Servers eligible for display, sorted by domain."""
        denied = await gate(ctx)
        if denied is not None:
            return denied
        servers = await FleetStore(ctx.guard).load_servers()
        if isinstance(servers, Failure):
            return render(ctx, servers)
        return render(ctx, [s.model_dump() for s in servers])

    @app.get("/console/servers/{server_id}")
    async def get_server(server_id: int, ctx: RequestContext = Depends(context)):
        denied = await gate(ctx)
        if denied is not None:
            return denied
        entity = await FleetStore(ctx.guard).load_server(server_id)
        if isinstance(entity, Failure):
            return render(ctx, entity)
        return render(ctx, entity.model_dump())

    @app.get("/console/servers/{server_id}/credentials")
    async def get_credentials(server_id: int, ctx: RequestContext = Depends(context)):
        """VNC password for the remote console."""
        denied = await gate(ctx)
        if denied is not None:
            return denied
        result = await FleetStore(ctx.guard).fetch_console_credentials(server_id)
        if isinstance(result, Failure):
            return render(ctx, result)
        return render(ctx, result.model_dump())

    @app.get("/console/reachability/{subject}")
    async def get_reachability(subject: str, ctx: RequestContext = Depends(context)):
        denied = await gate(ctx)
        if denied is not None:
            return denied
        state = await StatusPoller(ctx.guard).refresh(subject)
        return render(ctx, {
            "subject_key": state.subject_key,
            "status": state.status.value,
            "indicator": state.indicator,
        })

    # === ACTIONS ===

    @app.post("/console/servers/{server_id}/actions/{kind}")
    async def trigger_action(
        server_id: int,
        kind: ActionKind,
        req: ActionTriggerRequest,
        ctx: RequestContext = Depends(context),
    ):
        """Power, password reset and console toggle. Accepted is not completed."""
        denied = await gate(ctx)
        if denied is not None:
            return denied
        if kind in DESTRUCTIVE_ACTIONS:
            raise HTTPException(400, f"{kind.value} requires its confirmation workflow")
        if not req.confirmed:
            raise HTTPException(400, "Confirmation required")

        request = ActionRequest(kind=kind, target_server_id=server_id)
        outcome = await executor_for(ctx).execute(request, Confirmation.grant(request))
        if isinstance(outcome, Ack):
            return render(ctx, {
                "status": "accepted",
                "message": f"{kind.value} request accepted for server {server_id}",
                "result": outcome.payload,
            })
        return render(ctx, outcome)

    # === DESTRUCTIVE WORKFLOWS ===

    @app.get("/console/servers/{server_id}/workflows/{name}")
    async def get_workflow(server_id: int, name: str, ctx: RequestContext = Depends(context)):
        denied = await gate(ctx)
        if denied is not None:
            return denied
        return render(ctx, workflow_view(workflow_for(ctx, server_id, name)))

    @app.post("/console/servers/{server_id}/workflows/{name}/open")
    async def open_workflow(server_id: int, name: str, ctx: RequestContext = Depends(context)):
        """Enter selection with a freshly fetched option set."""
        denied = await gate(ctx)
        if denied is not None:
            return denied
        session_for(ctx)
        store = FleetStore(ctx.guard)
        entity = await store.load_server(server_id)
        server_name = None
        if not isinstance(entity, Failure):
            server_name = entity.domain or entity.name
        workflow = workflow_for(ctx, server_id, name, server_name)
        await workflow.open()
        return render(ctx, workflow_view(workflow))

    @app.put("/console/servers/{server_id}/workflows/{name}/selection")
    async def update_selection(
        server_id: int,
        name: str,
        req: SelectionRequest,
        ctx: RequestContext = Depends(context),
    ):
        denied = await gate(ctx)
        if denied is not None:
            return denied
        workflow = workflow_for(ctx, server_id, name)
        try:
            failure = None
            if isinstance(workflow, ReinstallWorkflow):
                if req.reinstall_type is not None:
                    workflow.set_reinstall_type(req.reinstall_type)
                if req.os_app_id is not None:
                    failure = workflow.select(req.os_app_id)
                if req.authentication is not None:
                    workflow.set_authentication(req.authentication)
                if req.ssh_key is not None:
                    workflow.set_ssh_key(req.ssh_key)
            elif req.snapshot_name is not None:
                failure = workflow.select(req.snapshot_name)
        except WorkflowStateError as e:
            raise HTTPException(409, str(e))
        except ValueError as e:
            raise HTTPException(400, str(e))
        if failure is not None:
            return render(ctx, failure)
        return render(ctx, workflow_view(workflow))

    @app.post("/console/servers/{server_id}/workflows/{name}/proceed")
    async def proceed_workflow(server_id: int, name: str, ctx: RequestContext = Depends(context)):
        denied = await gate(ctx)
        if denied is not None:
            return denied
        workflow = workflow_for(ctx, server_id, name)
        try:
            failure = workflow.proceed()
        except WorkflowStateError as e:
            raise HTTPException(409, str(e))
        if failure is not None:
            return render(ctx, failure)
        return render(ctx, workflow_view(workflow))

    @app.post("/console/servers/{server_id}/workflows/{name}/back")
    async def back_workflow(server_id: int, name: str, ctx: RequestContext = Depends(context)):
        denied = await gate(ctx)
        if denied is not None:
            return denied
        workflow = workflow_for(ctx, server_id, name)
        try:
            workflow.back()
        except WorkflowStateError as e:
            raise HTTPException(409, str(e))
        return render(ctx, workflow_view(workflow))

    @app.post("/console/servers/{server_id}/workflows/{name}/commit")
    async def commit_workflow(
        server_id: int,
        name: str,
        req: CommitRequest,
        ctx: RequestContext = Depends(context),
    ):
        """Dispatch the destructive call once the typed token matches."""
        denied = await gate(ctx)
        if denied is not None:
            return denied
        workflow = workflow_for(ctx, server_id, name)
        completed: List[Any] = []
        try:
            outcome = await workflow.commit(req.confirmation, on_complete=completed.append)
        except WorkflowStateError as e:
            raise HTTPException(409, str(e))
        if isinstance(outcome, Failure):
            return render(ctx, outcome)
        view = workflow_view(workflow)
        view["result"] = completed[0] if completed else None
        return render(ctx, view)

    @app.delete("/console/servers/{server_id}/workflows/{name}")
    async def close_workflow(server_id: int, name: str, ctx: RequestContext = Depends(context)):
        denied = await gate(ctx)
        if denied is not None:
            return denied
        workflow = workflow_for(ctx, server_id, name)
        workflow.close()
        return render(ctx, workflow_view(workflow))

    # === ADMIN ===

    async def admin_service(ctx: RequestContext):
        service = AdminUserService(ctx.guard)
        result = await service.mount()
        if isinstance(result, AuthFailure):
            return None, render(ctx, result)
        return service, None

    @app.get("/console/admin/users")
    async def admin_list_users(ctx: RequestContext = Depends(context)):
        service, denied = await admin_service(ctx)
        if denied is not None:
            return denied
        users = await service.list_users()
        if isinstance(users, Failure):
            return render(ctx, users)
        return render(ctx, [u.model_dump() for u in users])

    @app.post("/console/admin/users")
    async def admin_add_user(req: UserCreateRequest, ctx: RequestContext = Depends(context)):
        service, denied = await admin_service(ctx)
        if denied is not None:
            return denied
        return render(ctx, await service.add_user(req.email, req.groups))

    @app.put("/console/admin/users/{email}")
    async def admin_update_groups(
        email: str, req: UserGroupsRequest, ctx: RequestContext = Depends(context)
    ):
        service, denied = await admin_service(ctx)
        if denied is not None:
            return denied
        return render(ctx, await service.update_groups(email, req.groups))

    @app.delete("/console/admin/users/{email}")
    async def admin_delete_user(
        email: str, confirmed: bool = False, ctx: RequestContext = Depends(context)
    ):
        service, denied = await admin_service(ctx)
        if denied is not None:
            return denied
        if not confirmed:
            raise HTTPException(400, f"Deleting {email} requires confirmation")
        result = await service.delete_user(email, Confirmation.grant_for(delete_subject(email)))
        return render(ctx, result)

    @app.post("/console/admin/sync")
    async def admin_trigger_sync(ctx: RequestContext = Depends(context)):
        service, denied = await admin_service(ctx)
        if denied is not None:
            return denied
        return render(ctx, await service.trigger_sync())

    @app.get("/console/admin/api-keys")
    async def admin_api_keys(ctx: RequestContext = Depends(context)):
        service, denied = await admin_service(ctx)
        if denied is not None:
            return denied
        return render(ctx, await service.api_key_status())

    return app


# Default application instance
app = create_app(ConsoleConfig.from_env())
