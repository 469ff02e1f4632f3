import logging
import uuid
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.engine import Engine

from . import config, events, security
from .auth import authenticate
from .db import get_engine, init_db
from .errors import (
    AccountNotFound,
    DeadlineExceeded,
    DestinationNotFound,
    InsufficientBalance,
    InvalidCredential,
    InvalidRequest,
    InvalidToken,
    ItemNotFound,
    LedgerError,
)
from .logs import setup_logging
from .purchases import purchase
from .summary import get_account_summary
from .transfers import transfer

logger = logging.getLogger(__name__)

app = FastAPI(title="merch-ledger")


@app.on_event("startup")
async def start():
    setup_logging(config.LOG_LEVEL)
    init_db()
    await events.connect()


@app.on_event("shutdown")
async def stop():
    await events.close()


def _status_for(exc: LedgerError) -> int:
    if isinstance(exc, (InvalidCredential, InvalidToken)):
        return 401
    if isinstance(exc, (InvalidRequest, ItemNotFound, DestinationNotFound, InsufficientBalance)):
        return 400
    # A valid token for an account that is gone.
    if isinstance(exc, AccountNotFound):
        return 401
    if isinstance(exc, DeadlineExceeded):
        return 503
    return 500


@app.exception_handler(LedgerError)
async def ledger_error(request: Request, exc: LedgerError):
    status = _status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse({"errors": exc.message}, status_code=status)


@app.exception_handler(HTTPException)
async def http_error(request: Request, exc: HTTPException):
    return JSONResponse({"errors": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in e['loc'] if p != 'body')}: {e['msg']}" for e in exc.errors()
    )
    return JSONResponse({"errors": problems or "invalid request"}, status_code=400)


def get_account_id(auth: Optional[str] = Header(default=None, alias="Authorization")) -> uuid.UUID:
    if not auth:
        raise HTTPException(401, "empty Authorization header")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(401, "invalid Authorization header scheme")
    return security.verify_token(token)


def request_timeout() -> Optional[float]:
    return config.REQUEST_TIMEOUT_SECONDS or None


class AuthIn(BaseModel):
    username: str
    password: str


class TokenOut(BaseModel):
    token: str


class SendCoinIn(BaseModel):
    to_user: str = Field(alias="toUser")
    amount: int


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.post("/api/auth", response_model=TokenOut)
def auth(body: AuthIn, engine: Engine = Depends(get_engine)):
    account_id = authenticate(engine, body.username, body.password)
    return TokenOut(token=security.issue_token(account_id))


@app.get("/api/buy/{item}")
def buy(
    item: str,
    background_tasks: BackgroundTasks,
    account_id: uuid.UUID = Depends(get_account_id),
    engine: Engine = Depends(get_engine),
):
    entry = purchase(engine, account_id, item, timeout=request_timeout())
    background_tasks.add_task(
        events.publish,
        events.PURCHASE_COMPLETED,
        {"purchase_id": str(entry.id), "account_id": str(account_id), "item": item, "amount": entry.amount},
    )
    return {}


@app.post("/api/sendCoin")
def send_coin(
    body: SendCoinIn,
    background_tasks: BackgroundTasks,
    account_id: uuid.UUID = Depends(get_account_id),
    engine: Engine = Depends(get_engine),
):
    entry = transfer(engine, account_id, body.to_user, body.amount, timeout=request_timeout())
    background_tasks.add_task(
        events.publish,
        events.TRANSFER_COMPLETED,
        {
            "transfer_id": str(entry.id),
            "source_account_id": str(entry.source_account_id),
            "destination_account_id": str(entry.destination_account_id),
            "amount": entry.amount,
        },
    )
    return {}


@app.get("/api/info")
def info(account_id: uuid.UUID = Depends(get_account_id), engine: Engine = Depends(get_engine)):
    summary = get_account_summary(engine, account_id)
    return {
        "coins": summary.balance,
        "inventory": [{"type": i.type, "quantity": i.quantity} for i in summary.inventory],
        "coinHistory": {
            # Grants are system credits, not coins sent by another user.
            "received": [
                {"fromUser": r.from_username, "amount": r.amount} for r in summary.received if not r.is_grant
            ],
            "sent": [{"toUser": s.to_username, "amount": s.amount} for s in summary.sent],
        },
    }
