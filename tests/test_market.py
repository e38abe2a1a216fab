"""
API tests for public market data.
"""

from decimal import Decimal


class TestMarketEndpoints:
    def test_ticker_falls_back_to_exchange(self, client, exchange):
        exchange.last_price = Decimal("61234.5")
        response = client.get("/api/v1/market/ticker")
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["last_price"]) == Decimal("61234.5")
        assert Decimal(body["offer"]) == Decimal("61235.5")

    def test_ticker_outage_is_502(self, client, exchange):
        exchange.fail_on.add("get_ticker")
        response = client.get("/api/v1/market/ticker")
        assert response.status_code == 502
        assert response.json()["error"] == "Upstream service error"

    def test_index_history_oldest_first(self, client, exchange):
        exchange.index_history = [Decimal(v) for v in ("100", "101", "102")]
        body = client.get("/api/v1/market/index-history", params={"limit": 2}).json()
        assert [Decimal(p["value"]) for p in body] == [Decimal("101"), Decimal("102")]

    def test_index_history_limit_bounds(self, client):
        assert client.get("/api/v1/market/index-history", params={"limit": 0}).status_code == 400
