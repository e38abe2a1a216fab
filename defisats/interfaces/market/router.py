"""
FastAPI router for public LN Markets market data.

The ticker comes from the relay's cache when the relay has polled at
least once; otherwise it is fetched from the exchange directly.
"""

from fastapi import APIRouter, Depends, Query

from defisats.domain.exchange.ports import ExchangePort
from defisats.interfaces.dependencies import get_public_exchange
from defisats.interfaces.market.schemas import IndexPointResponse, TickerResponse
from defisats.interfaces.realtime import get_market_relay
from defisats.interfaces.schemas import ErrorResponse

router = APIRouter(prefix="/market", tags=["market"])


@router.get(
    "/ticker",
    response_model=TickerResponse,
    responses={502: {"model": ErrorResponse}},
    summary="Current futures ticker",
)
def get_ticker(exchange: ExchangePort = Depends(get_public_exchange)) -> TickerResponse:
    relay = get_market_relay()
    ticker = relay.last_ticker if relay is not None else None
    if ticker is None:
        ticker = exchange.get_ticker()
    return TickerResponse.model_validate(ticker)


@router.get(
    "/index-history",
    response_model=list[IndexPointResponse],
    responses={502: {"model": ErrorResponse}},
    summary="Recent index samples, oldest first",
)
def get_index_history(
    limit: int = Query(100, ge=1, le=1000),
    exchange: ExchangePort = Depends(get_public_exchange),
) -> list[IndexPointResponse]:
    return [IndexPointResponse.model_validate(p) for p in exchange.get_index_history(limit)]
