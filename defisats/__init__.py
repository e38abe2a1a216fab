"""
DefiSats Hub: trading automation backend for LN Markets.

Bounded contexts:
    - exchange: Signed LN Markets client, trades, tickers, risk levels.
    - accounts: Users, sessions, subscription plans.
    - billing: Coupons and Lightning payments.
    - automation: Margin guard, take-profit/stop-loss, auto-entry, trade logs.
    - notifications: In-app notifications and webhook fan-out.

Layers:
    - domain: Pure business logic, entities, ports (ABCs), errors.
    - application: Use cases, DTOs, orchestration.
    - infrastructure: Adapters (DB, LN Markets, payment nodes) implementing domain ports.
    - interfaces: FastAPI routers, Pydantic schemas.
    - realtime: Market data relay, WebSocket stream, automation scheduler.
    - shared: Cross-cutting concerns (errors, security, logging).
"""
