import logging
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse, Response
from supabase import Client

from . import actions
from .actions import RequestContext
from .auth import IdentityProvider
from .cache import DASHBOARD_PATH, LOGIN_PATH, ViewCache, customer_path, get_redis
from .config import Settings, get_settings
from .logging_conf import configure_logging
from .models import ActionResult, ShopUser, StatusUpdateIn
from .store import RecordStore, SupabaseRecordStore, create_backend_client

logger = logging.getLogger("tailor_crm")


class LoginRequired(Exception):
    pass


# ===== DEPENDENCIES =====

def get_session_token(request: Request, settings: Settings = Depends(get_settings)) -> Optional[str]:
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth.split(" ", 1)[1]
    return None


def get_backend_client(settings: Settings = Depends(get_settings),
                       token: Optional[str] = Depends(get_session_token)) -> Client:
    return create_backend_client(settings, access_token=token)


def get_store(client: Client = Depends(get_backend_client)) -> RecordStore:
    return SupabaseRecordStore(client)


def get_identity(client: Client = Depends(get_backend_client)) -> IdentityProvider:
    return IdentityProvider(client)


def get_view_cache(request: Request) -> ViewCache:
    return request.app.state.view_cache


def get_current_user(token: Optional[str] = Depends(get_session_token),
                     identity: IdentityProvider = Depends(get_identity)) -> Optional[ShopUser]:
    return identity.get_user(token)


def get_context(request: Request,
                settings: Settings = Depends(get_settings),
                store: RecordStore = Depends(get_store),
                identity: IdentityProvider = Depends(get_identity),
                cache: ViewCache = Depends(get_view_cache),
                user: Optional[ShopUser] = Depends(get_current_user),
                token: Optional[str] = Depends(get_session_token)) -> RequestContext:
    origin = request.headers.get("origin") or settings.APP_BASE_URL
    return RequestContext(store=store, identity=identity, cache=cache, user=user,
                          origin=origin.rstrip("/"), access_token=token)


def require_context(ctx: RequestContext = Depends(get_context)) -> RequestContext:
    if ctx.user is None:
        raise LoginRequired()
    return ctx


async def read_form(request: Request) -> Dict[str, str]:
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


# ===== RESPONSES =====

def _redirect(path: str) -> RedirectResponse:
    return RedirectResponse(path, status_code=status.HTTP_303_SEE_OTHER)


def _respond(result: ActionResult, settings: Settings) -> Response:
    if not result.success:
        logger.info("action_rejected", extra={
            "evt": "action", "decision": "reject", "reason": result.error, "status_code": result.status_code,
        })
        return JSONResponse(status_code=result.status_code,
                            content=result.model_dump(mode="json", exclude_none=True))
    if result.redirect_to:
        response = _redirect(result.redirect_to)
        if result.session is not None:
            response.set_cookie(
                settings.SESSION_COOKIE_NAME,
                result.session.access_token,
                max_age=settings.SESSION_COOKIE_MAX_AGE,
                httponly=True,
                secure=settings.SESSION_COOKIE_SECURE,
                samesite="lax",
            )
        return response
    return JSONResponse(status_code=status.HTTP_200_OK,
                        content=result.model_dump(mode="json", exclude_none=True))


# ===== APP =====

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    app = FastAPI(title="Tailor CRM")
    if settings is not None:
        app.dependency_overrides[get_settings] = lambda: settings
    else:
        settings = get_settings()
    configure_logging(settings)

    app.state.view_cache = ViewCache(get_redis(settings.REDIS_URL), ttl_seconds=settings.VIEW_CACHE_TTL_SECONDS)

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired):
        logger.info("login_required", extra={"evt": "guard", "path": request.url.path, "decision": "redirect"})
        return _redirect(LOGIN_PATH)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info(
            "validation_error",
            extra={"evt": "validation_error", "decision": "reject", "reason": "validation error", "status_code": 400},
        )
        return JSONResponse(status_code=400, content={"success": False, "error": "Invalid fields",
                                                      "error_kind": "validation"})

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"service": "tailor-crm", "status": "ok"}

    @app.get("/")
    def root() -> RedirectResponse:
        return _redirect(DASHBOARD_PATH)

    # ----- auth -----

    @app.get(LOGIN_PATH)
    def login_page(user: Optional[ShopUser] = Depends(get_current_user)):
        if user is not None:
            return _redirect(DASHBOARD_PATH)
        return {"authenticated": False}

    @app.post(LOGIN_PATH)
    def login(form: Dict[str, str] = Depends(read_form), ctx: RequestContext = Depends(get_context),
              settings: Settings = Depends(get_settings)):
        return _respond(actions.login(ctx, form), settings)

    @app.post("/signup")
    def signup(form: Dict[str, str] = Depends(read_form), ctx: RequestContext = Depends(get_context),
               settings: Settings = Depends(get_settings)):
        return _respond(actions.signup(ctx, form), settings)

    @app.get("/auth/callback")
    def auth_callback():
        # Sign-up confirmation lands here; the user signs in again from the login page
        return _redirect(LOGIN_PATH)

    @app.post("/logout")
    def logout(ctx: RequestContext = Depends(get_context), settings: Settings = Depends(get_settings)):
        response = _respond(actions.logout(ctx), settings)
        response.delete_cookie(settings.SESSION_COOKIE_NAME)
        return response

    # ----- customers -----

    @app.get(DASHBOARD_PATH)
    def dashboard(q: Optional[str] = None, ctx: RequestContext = Depends(require_context)) -> Dict[str, Any]:
        if not q:
            cached = ctx.cache.get(DASHBOARD_PATH, ctx.user.id)
            if cached is not None:
                return cached
        customers = actions.get_customers(ctx, query=q)
        payload = {"customers": [c.model_dump(mode="json") for c in customers]}
        if not q and customers:
            ctx.cache.set(DASHBOARD_PATH, ctx.user.id, payload)
        return payload

    @app.post(f"{DASHBOARD_PATH}/customers")
    def create_customer(form: Dict[str, str] = Depends(read_form),
                        ctx: RequestContext = Depends(require_context),
                        settings: Settings = Depends(get_settings)):
        return _respond(actions.create_customer(ctx, form), settings)

    @app.get(f"{DASHBOARD_PATH}/customer/{{customer_id}}")
    def customer_detail(customer_id: str, ctx: RequestContext = Depends(require_context)) -> Dict[str, Any]:
        path = customer_path(customer_id)
        cached = ctx.cache.get(path, ctx.user.id)
        if cached is not None:
            return cached
        customer = actions.get_customer_by_id(ctx, customer_id)
        if customer is None:
            raise HTTPException(status_code=404, detail="Customer not found")
        payload = {"customer": customer.model_dump(mode="json")}
        ctx.cache.set(path, ctx.user.id, payload)
        return payload

    @app.post(f"{DASHBOARD_PATH}/customer/{{customer_id}}")
    def update_customer(customer_id: str, form: Dict[str, str] = Depends(read_form),
                        ctx: RequestContext = Depends(require_context),
                        settings: Settings = Depends(get_settings)):
        return _respond(actions.update_customer(ctx, customer_id, form), settings)

    @app.post(f"{DASHBOARD_PATH}/customer/{{customer_id}}/delete")
    def delete_customer(customer_id: str, ctx: RequestContext = Depends(require_context),
                        settings: Settings = Depends(get_settings)):
        return _respond(actions.delete_customer(ctx, customer_id), settings)

    # ----- measurement sets -----

    @app.post(f"{DASHBOARD_PATH}/customer/{{customer_id}}/measurement-sets")
    def add_measurement_set(customer_id: str, payload: Dict[str, Any] = Body(...),
                            ctx: RequestContext = Depends(require_context),
                            settings: Settings = Depends(get_settings)):
        return _respond(actions.add_measurement_set(ctx, customer_id, payload), settings)

    @app.post(f"{DASHBOARD_PATH}/customer/{{customer_id}}/measurement-sets/{{set_id}}/order-status")
    def update_order_status(customer_id: str, set_id: str, body: StatusUpdateIn,
                            ctx: RequestContext = Depends(require_context),
                            settings: Settings = Depends(get_settings)):
        return _respond(actions.update_order_status(ctx, set_id, customer_id, body.status), settings)

    @app.post(f"{DASHBOARD_PATH}/customer/{{customer_id}}/measurement-sets/{{set_id}}/payment-status")
    def update_payment_status(customer_id: str, set_id: str, body: StatusUpdateIn,
                              ctx: RequestContext = Depends(require_context),
                              settings: Settings = Depends(get_settings)):
        return _respond(actions.update_payment_status(ctx, set_id, customer_id, body.status), settings)

    return app


app = create_app()


def main() -> None:
    settings = get_settings()
    logger.info(f"🚀 Starting Tailor CRM on {settings.SERVER_HOST}:{settings.SERVER_PORT}")
    uvicorn.run(app, host=settings.SERVER_HOST, port=settings.SERVER_PORT)


if __name__ == "__main__":
    main()
