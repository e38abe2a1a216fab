"""
Pydantic schemas for public market data.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class TickerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    index: Decimal
    last_price: Decimal
    bid: Decimal | None = None
    offer: Decimal | None = None
    funding_rate: Decimal | None = None
    timestamp: datetime | None = None


class IndexPointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    time: datetime
    value: Decimal
