from fastapi import FastAPI, HTTPException, Depends, Request, APIRouter
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel
from typing import Any, List, Optional, Union
from datetime import datetime, timedelta, timezone
import asyncio
import json
import logging
import os
import time

from feteer_shared import RequestIDMiddleware, configure_cors, add_standard_health, setup_json_logging

from .analytics import summarize
from .auth import (
    AUTH_COOKIE,
    ROLES,
    authenticate,
    ensure_default_admin,
    hash_password,
    require_admin,
    require_user,
    verify_credentials,
)
from .guard import route_guard
from .pricing import order_price
from .seed import seed_menu, seed_menu_if_empty
from .store import DuplicateUsername, OrderStore, UnknownMenuKind
from .tokens import JWT_TTL_SECS, Principal, encode_token, jwt_secret


def _env_or(key: str, default: str) -> str:
    v = os.getenv(key)
    return v if v is not None else default


ENV = _env_or("ENV", "dev").lower()
ORDER_STATUSES: tuple[str, ...] = tuple(
    s.strip() for s in _env_or("ORDER_STATUSES", "ordered,completed").split(",") if s.strip()
)
LOGIN_FAIL_DELAY_SECS = float(_env_or("LOGIN_FAIL_DELAY_SECS", "1.0"))
COOKIE_SECURE = _env_or("COOKIE_SECURE", "true" if ENV in ("prod", "production") else "false").lower() == "true"
SEED_MENU = _env_or("SEED_MENU", "true").lower() == "true"


app = FastAPI(title="Feteer Counter API", version="0.1.0")
setup_json_logging()
# Registered before the request id middleware so guard rejections still carry a request id.
app.middleware("http")(route_guard)
app.add_middleware(RequestIDMiddleware)
configure_cors(app, os.getenv("ALLOWED_ORIGINS"))

store = OrderStore.from_env()

add_standard_health(app)
add_standard_health(app, path="/api/health", check=store.ping)

router = APIRouter(prefix="/api")
_log = logging.getLogger("feteer.api")
_audit_logger = logging.getLogger("feteer.audit")


def get_store() -> OrderStore:
    return store


def _startup():
    jwt_secret()
    store.create_schema()
    ensure_default_admin(store)
    if SEED_MENU:
        seed_menu_if_empty(store)

app.router.on_startup.append(_startup)


def _audit(action: str, principal: Optional[Principal], **extra: Any) -> None:
    """Structured audit entry for admin actions."""
    payload: dict[str, Any] = {
        "event": "audit",
        "action": action,
        "username": principal.username if principal else "",
        "ts_ms": int(time.time() * 1000),
    }
    for k, v in extra.items():
        if v is not None:
            payload[k] = v
    _audit_logger.info(payload)


def _parse_id(raw: str, what: str = "order") -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"invalid {what} id")


def _truthy(v: Any) -> bool:
    return v is True or v == "true"


# Auth

class LoginReq(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


@router.post("/auth/login")
async def login(req: LoginReq, s: OrderStore = Depends(get_store)):
    username = (req.username or "").strip()
    if not username or not req.password:
        raise HTTPException(status_code=400, detail="username and password are required")
    user = verify_credentials(s, username, req.password)
    if user is None:
        _log.info("failed login for %r", username)
        # Slow down guessing.
        if LOGIN_FAIL_DELAY_SECS > 0:
            await asyncio.sleep(LOGIN_FAIL_DELAY_SECS)
        raise HTTPException(status_code=401, detail="invalid username or password")
    principal = Principal(id=user.id, username=user.username, role=user.role)
    token = encode_token(principal)
    resp = JSONResponse(
        {
            "success": True,
            "message": "Login successful",
            "user": {"id": user.id, "username": user.username, "role": user.role, "isAuthenticated": True},
            "token": token,
        }
    )
    resp.set_cookie(
        AUTH_COOKIE,
        token,
        max_age=JWT_TTL_SECS,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="strict",
        path="/",
    )
    return resp


@router.post("/auth/logout")
def logout():
    resp = JSONResponse({"success": True})
    resp.delete_cookie(AUTH_COOKIE, path="/")
    return resp


@router.get("/auth/check")
def auth_check(request: Request):
    p = authenticate(request)
    if p is None:
        return JSONResponse(status_code=401, content={"isAuthenticated": False, "user": None})
    return {"isAuthenticated": True, "user": {"id": p.id, "username": p.username, "role": p.role}}


# Orders

class OrderCreate(BaseModel):
    customer_name: Optional[str] = None
    item_type: Optional[str] = None
    feteer_type: Optional[str] = None
    sweet_type: Optional[str] = None
    sweet_selections: Optional[Union[str, dict[str, Any]]] = None
    meat_selection: Optional[Union[str, List[str]]] = None
    additional_meat_selection: Optional[List[str]] = None
    cheese_selection: Optional[str] = None
    has_cheese: Optional[Union[bool, str]] = None
    extra_nutella: Optional[Union[bool, str]] = None
    notes: Optional[str] = None
    status: Optional[str] = None


class StatusReq(BaseModel):
    status: Optional[str] = None


@router.get("/orders")
def list_orders(status: str = "", s: OrderStore = Depends(get_store)):
    statuses = None
    if status and status != "all":
        statuses = [x.strip() for x in status.split(",") if x.strip()]
    try:
        return s.list_orders(statuses)
    except Exception:
        _log.exception("error fetching orders")
        raise HTTPException(status_code=500, detail="failed to fetch orders")


@router.post("/orders", status_code=201)
def create_order(req: OrderCreate, s: OrderStore = Depends(get_store)):
    customer = (req.customer_name or "").strip()
    if not customer or not req.item_type:
        raise HTTPException(status_code=400, detail="missing required fields")
    if req.item_type not in ("feteer", "sweet"):
        raise HTTPException(status_code=400, detail="invalid item_type")
    if req.item_type == "feteer" and not req.feteer_type:
        raise HTTPException(status_code=400, detail="feteer_type is required for feteer orders")
    if req.item_type == "sweet" and not req.sweet_type and not req.sweet_selections:
        raise HTTPException(status_code=400, detail="sweet_type or sweet_selections are required for sweet orders")
    status = req.status or ORDER_STATUSES[0]
    if status not in ORDER_STATUSES:
        raise HTTPException(status_code=400, detail="invalid status")

    extra_nutella = _truthy(req.extra_nutella)
    price = order_price(
        req.item_type,
        feteer_prices=s.menu_prices("feteer"),
        sweet_prices=s.menu_prices("sweets"),
        feteer_type=req.feteer_type,
        sweet_type=req.sweet_type,
        sweet_selections=req.sweet_selections,
        additional_meats=len(req.additional_meat_selection or []),
        extra_nutella=extra_nutella,
    )
    sweet_selections = req.sweet_selections
    if isinstance(sweet_selections, dict):
        sweet_selections = json.dumps(sweet_selections, ensure_ascii=False)
    meat = req.meat_selection
    if isinstance(meat, list):
        meat = ",".join(meat)
    data = {
        "customer_name": customer,
        "item_type": req.item_type,
        "feteer_type": req.feteer_type or None,
        "sweet_type": req.sweet_type or None,
        "sweet_selections": sweet_selections or None,
        "meat_selection": meat or None,
        "cheese_selection": req.cheese_selection or None,
        "has_cheese": _truthy(req.has_cheese),
        "extra_nutella": extra_nutella,
        "notes": (req.notes or "").strip() or None,
        "status": status,
        "price": price,
    }
    try:
        return s.create_order(data)
    except Exception:
        _log.exception("error creating order")
        raise HTTPException(status_code=500, detail="failed to create order")


@router.get("/orders/{oid}")
def get_order(oid: str, s: OrderStore = Depends(get_store)):
    o = s.get_order(_parse_id(oid))
    if not o:
        raise HTTPException(status_code=404, detail="order not found")
    return o


@router.patch("/orders/{oid}")
def update_order_status(oid: str, req: StatusReq, s: OrderStore = Depends(get_store)):
    order_id = _parse_id(oid)
    if not req.status or req.status not in ORDER_STATUSES:
        raise HTTPException(status_code=400, detail="invalid status")
    if not s.update_order_status(order_id, req.status):
        raise HTTPException(status_code=404, detail="order not found")
    return {"message": "order status updated", "id": order_id, "status": req.status}


@router.delete("/orders/{oid}")
def delete_order(oid: str, s: OrderStore = Depends(get_store)):
    order_id = _parse_id(oid)
    if not s.delete_order(order_id):
        raise HTTPException(status_code=404, detail="order not found")
    return {"message": "order deleted", "id": order_id}


# Menu

class MenuEntryReq(BaseModel):
    item_name: Optional[str] = None
    item_name_arabic: Optional[str] = None
    name: Optional[str] = None
    name_arabic: Optional[str] = None
    price: Optional[float] = None
    available: Optional[bool] = None
    is_default: Optional[bool] = None
    feteer_type: Optional[str] = None


def _menu_call(fn, *args):
    try:
        return fn(*args)
    except UnknownMenuKind:
        raise HTTPException(status_code=404, detail="unknown menu kind")


@router.get("/menu")
def get_menu(s: OrderStore = Depends(get_store)):
    return s.menu_snapshot()


@router.get("/menu/{kind}")
def list_menu(kind: str, s: OrderStore = Depends(get_store)):
    return _menu_call(s.list_menu, kind)


@router.post("/menu/{kind}", status_code=201)
def create_menu_entry(kind: str, req: MenuEntryReq, p: Principal = Depends(require_admin), s: OrderStore = Depends(get_store)):
    data = req.model_dump(exclude_unset=True)
    if kind in ("feteer", "sweets"):
        if not (req.item_name or "").strip() or req.price is None:
            raise HTTPException(status_code=400, detail="item_name and price are required")
    elif not (req.name or "").strip():
        raise HTTPException(status_code=400, detail="name is required")
    row = _menu_call(s.create_menu_entry, kind, data)
    _audit("menu_create", p, kind=kind, entry_id=row["id"])
    return row


@router.put("/menu/{kind}/{entry_id}")
def update_menu_entry(kind: str, entry_id: str, req: MenuEntryReq, p: Principal = Depends(require_admin), s: OrderStore = Depends(get_store)):
    eid = _parse_id(entry_id, "menu")
    if not _menu_call(s.update_menu_entry, kind, eid, req.model_dump(exclude_unset=True)):
        raise HTTPException(status_code=404, detail="menu entry not found")
    _audit("menu_update", p, kind=kind, entry_id=eid)
    return {"success": True}


@router.delete("/menu/{kind}/{entry_id}")
def delete_menu_entry(kind: str, entry_id: str, p: Principal = Depends(require_admin), s: OrderStore = Depends(get_store)):
    eid = _parse_id(entry_id, "menu")
    if not _menu_call(s.delete_menu_entry, kind, eid):
        raise HTTPException(status_code=404, detail="menu entry not found")
    _audit("menu_delete", p, kind=kind, entry_id=eid)
    return {"success": True}


# Analytics

@router.get("/analytics")
def analytics(days: int = 7, s: OrderStore = Depends(get_store)):
    days = max(1, min(days, 365))
    now = datetime.now(timezone.utc)
    start = (now - timedelta(days=days)).replace(hour=0, minute=0, second=0, microsecond=0)
    orders = s.orders_between(start, now)
    return summarize(orders, start.date(), now.date())


# Admin

class UserCreate(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class UserPatch(BaseModel):
    is_active: Any = None


class ResetReq(BaseModel):
    reset_orders: bool = False
    reset_menu: bool = False


@router.get("/admin/users")
def list_users(p: Principal = Depends(require_admin), s: OrderStore = Depends(get_store)):
    return s.list_users()


@router.post("/admin/users")
def create_user(req: UserCreate, p: Principal = Depends(require_admin), s: OrderStore = Depends(get_store)):
    username = (req.username or "").strip()
    if not username or not req.password or not req.role:
        raise HTTPException(status_code=400, detail="username, password and role are required")
    if req.role not in ROLES:
        raise HTTPException(status_code=400, detail="invalid role; must be admin or cashier")
    try:
        user = s.create_user(username, hash_password(req.password), req.role)
    except DuplicateUsername:
        raise HTTPException(status_code=400, detail="username already exists")
    _audit("user_create", p, target=username, role=req.role)
    return {"message": "user created", "user": user}


@router.patch("/admin/users/{uid}")
def update_user(uid: str, req: UserPatch, p: Principal = Depends(require_admin), s: OrderStore = Depends(get_store)):
    user_id = _parse_id(uid, "user")
    if not isinstance(req.is_active, bool):
        raise HTTPException(status_code=400, detail="is_active must be a boolean")
    if not s.set_user_active(user_id, req.is_active):
        raise HTTPException(status_code=404, detail="user not found")
    _audit("user_active", p, target_id=user_id, is_active=req.is_active)
    return {"message": f"user {'activated' if req.is_active else 'deactivated'}"}


@router.delete("/admin/users/{uid}")
def delete_user(uid: str, p: Principal = Depends(require_admin), s: OrderStore = Depends(get_store)):
    user_id = _parse_id(uid, "user")
    if user_id == p.id:
        raise HTTPException(status_code=400, detail="cannot delete your own account")
    if not s.delete_user(user_id):
        raise HTTPException(status_code=404, detail="user not found")
    _audit("user_delete", p, target_id=user_id)
    return {"message": "user deleted"}


@router.post("/admin/reset")
def reset(req: ResetReq, p: Principal = Depends(require_admin), s: OrderStore = Depends(get_store)):
    results: list[str] = []
    if req.reset_orders:
        s.reset_orders()
        results.append("all orders deleted and id sequence reset")
    if req.reset_menu:
        seed_menu(s, reset=True)
        results.append("menu reset to defaults")
    _audit("reset", p, reset_orders=req.reset_orders, reset_menu=req.reset_menu)
    return {"message": "database reset completed", "results": results}


@app.get("/")
def index(p: Principal = Depends(require_user)):
    return {"service": app.title, "user": p.username, "role": p.role, "statuses": list(ORDER_STATUSES)}


@app.get("/login", response_class=HTMLResponse)
def login_page():
    html = """
<!doctype html>
<html><head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>Feteer Counter · Login</title>
  <style>
    body{font-family:sans-serif;margin:20px;max-width:360px;color:#0f172a;background:#ffffff;}
    input,button{display:block;width:100%;margin:6px 0;padding:6px;}
  </style>
</head><body>
  <h1>Feteer Counter</h1>
  <form id="f">
    <input name="username" placeholder="username" autocomplete="username" />
    <input name="password" type="password" placeholder="password" autocomplete="current-password" />
    <button type="submit">Log in</button>
  </form>
  <p id="err"></p>
  <script>
    document.getElementById('f').onsubmit = async (e) => {
      e.preventDefault();
      const fd = new FormData(e.target);
      const r = await fetch('/api/auth/login', {method: 'POST', headers: {'Content-Type': 'application/json'},
        body: JSON.stringify({username: fd.get('username'), password: fd.get('password')})});
      if (r.ok) { window.location = '/'; } else { document.getElementById('err').textContent = 'Invalid username or password'; }
    };
  </script>
</body></html>
"""
    return HTMLResponse(content=html)


app.include_router(router)
