"""HTTP surface for the trade operations."""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from .config import load_config
from .errors import InvalidRequestError, TradeMCPError, error_status, format_error_response
from .logger import get_logger
from .trading_service import TradingService, create_service
from .validation import (
    AllowanceParams,
    ChainListParams,
    FeeParams,
    QuoteParams,
    SwapParams,
    TokenAmountParams,
    TradeLookupParams,
    TradeStatusUpdateParams,
    parse_params,
)

router = APIRouter(prefix="/trade")
log = get_logger(__name__)


def _service(request: Request) -> TradingService:
    return request.app.state.service


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise InvalidRequestError("Request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return body


def _query(request: Request) -> dict[str, Any]:
    return dict(request.query_params)


@router.get("/quote", tags=["quote"])
async def get_quote(request: Request) -> dict[str, Any]:
    """Indicative quote from query parameters."""
    params = parse_params(QuoteParams, _query(request))
    return await _service(request).get_quote(params)


@router.post("/quote", tags=["quote"])
async def post_quote(request: Request) -> dict[str, Any]:
    """Indicative quote from a JSON body."""
    params = parse_params(QuoteParams, await _json_body(request))
    return await _service(request).get_quote(params)


@router.get("/estimate", tags=["quote"])
async def get_estimate(request: Request) -> dict[str, Any]:
    """Quote plus fee summary from query parameters."""
    params = parse_params(QuoteParams, _query(request))
    return await _service(request).estimate_trade_outcome(params)


@router.post("/estimate", tags=["quote"])
async def post_estimate(request: Request) -> dict[str, Any]:
    params = parse_params(QuoteParams, await _json_body(request))
    return await _service(request).estimate_trade_outcome(params)


@router.get("/amount/parse", tags=["amount"])
async def parse_amount(request: Request) -> dict[str, Any]:
    """Human amount to base units: ``?amount=1.5&decimals=18``."""
    params = parse_params(TokenAmountParams, _query(request))
    return await _service(request).parse_token_amount(params)


@router.get("/amount/format", tags=["amount"])
async def format_amount(request: Request) -> dict[str, Any]:
    """Base units to a display string: ``?amount=1500000&decimals=6``."""
    params = parse_params(TokenAmountParams, _query(request))
    return await _service(request).format_token_amount(params)


@router.post("/swap", tags=["swap"])
async def prepare_swap(request: Request) -> dict[str, Any]:
    """Executable swap transaction plus a pending trade record."""
    params = parse_params(SwapParams, await _json_body(request))
    return await _service(request).prepare_swap(params)


@router.patch("/swap", tags=["swap"])
async def update_trade_status(request: Request) -> dict[str, Any]:
    body = await _json_body(request)
    params = parse_params(TradeStatusUpdateParams, {**body, **_query(request)})
    return await _service(request).update_trade_status(params)


@router.get("/swap", tags=["swap"])
async def get_trade(request: Request) -> dict[str, Any]:
    params = parse_params(TradeLookupParams, _query(request))
    return await _service(request).get_trade(params)


@router.get("/allowance", tags=["allowance"])
async def get_allowance(request: Request) -> dict[str, Any]:
    params = parse_params(AllowanceParams, _query(request))
    return await _service(request).check_allowance(params)


@router.post("/allowance", tags=["allowance"])
async def post_allowance(request: Request) -> dict[str, Any]:
    params = parse_params(AllowanceParams, await _json_body(request))
    return await _service(request).check_allowance(params)


@router.post("/fees", tags=["fees"])
async def post_fees(request: Request) -> dict[str, Any]:
    params = parse_params(FeeParams, await _json_body(request))
    return await _service(request).calculate_fees(params)


@router.get("/fees", tags=["fees"])
async def get_fees(request: Request) -> dict[str, Any]:
    """Fee breakdown, or fee history / config when ``action`` is given."""
    query = _query(request)
    action = query.pop("action", None)
    service = _service(request)
    if action == "history":
        return await service.get_fee_history()
    if action == "config":
        return await service.get_fee_config()
    if action is not None:
        raise InvalidRequestError(
            f"Unknown action: {action}",
            field="action",
            value=action,
            constraint="one of: history, config",
        )
    params = parse_params(FeeParams, query)
    return await service.calculate_fees(params)


@router.get("/chains", tags=["chains"])
async def get_chains(request: Request) -> dict[str, Any]:
    params = parse_params(ChainListParams, _query(request))
    return await _service(request).get_supported_chains(params.feature)


async def _trade_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status = error_status(exc)
    if status >= 500:
        log.warning("[HTTP][%s][%s] %s", request.method, request.url.path, exc)
    else:
        log.info("[HTTP][%s][%s] rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content=format_error_response(exc))


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("[HTTP][%s][%s] unexpected failure", request.method, request.url.path)
    return JSONResponse(status_code=500, content=format_error_response(exc))


def create_app(service: Optional[TradingService] = None) -> FastAPI:
    """Build the FastAPI application; loads configuration when no service is given."""
    if service is None:
        service = create_service(load_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("[HTTP][APP][START] routes=%d", len(router.routes))
        try:
            yield
        finally:
            await app.state.service.aclose()

    app = FastAPI(title="trade-mcp", lifespan=lifespan)
    app.state.service = service
    app.include_router(router)
    app.add_exception_handler(TradeMCPError, _trade_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
    return app
