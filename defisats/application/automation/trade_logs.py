"""
Use cases: Read trade logs.

Input: TradeLogQuery / user id
Output: TradeLogPage / TradeLogStats
Side effects: None (read-only queries).
Failure cases: None.
"""

from uuid import UUID

from defisats.application.automation.dtos import TradeLogPage, TradeLogQuery
from defisats.domain.automation.entities import TradeLogStats
from defisats.domain.automation.ports import TradeLogRepository

MAX_PAGE_SIZE = 100


class ListTradeLogsUseCase:
    def __init__(self, trade_log_repo: TradeLogRepository) -> None:
        self._repo = trade_log_repo

    def execute(self, query: TradeLogQuery) -> TradeLogPage:
        page = max(query.page, 1)
        page_size = min(max(query.page_size, 1), MAX_PAGE_SIZE)
        items, total = self._repo.list(
            query.user_id,
            query.filters,
            limit=page_size,
            offset=(page - 1) * page_size,
        )
        return TradeLogPage(items=items, total=total, page=page, page_size=page_size)


class TradeLogStatsUseCase:
    def __init__(self, trade_log_repo: TradeLogRepository) -> None:
        self._repo = trade_log_repo

    def execute(self, user_id: UUID) -> TradeLogStats:
        return self._repo.stats(user_id)
