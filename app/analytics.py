"""Analytics calculations"""
import asyncio
import logging
from typing import Optional

from db import EventStore
from helpers import day_bounds, parse_date, utc_now_iso
from models import DailyStats, PathViews

logger = logging.getLogger(__name__)

TOP_PATHS_LIMIT = 10


class StatsService:
    def __init__(self, store: EventStore):
        self.store = store

    async def get_stats(self, site_id: str, date: Optional[str] = None, event_type: str = "page_view") -> DailyStats:
        """Daily views, unique users and top paths for one site"""
        day = parse_date(date) if date else None
        start, end = day_bounds(day)
        logger.info(f"Generating stats for {site_id} on {start.date().isoformat()}")

        query = {
            "site_id": site_id,
            "event_type": event_type,
            "timestamp": {"$gte": start, "$lte": end}
        }

        # a failed read cancels the other two
        try:
            async with asyncio.TaskGroup() as tg:
                count_task = tg.create_task(self.store.count(query))
                users_task = tg.create_task(self.store.distinct("user_id", query))
                paths_task = tg.create_task(self.store.top_values("path", query, TOP_PATHS_LIMIT))
        except ExceptionGroup as eg:
            raise eg.exceptions[0]

        total_views, users, top_paths = count_task.result(), users_task.result(), paths_task.result()

        return DailyStats(
            site_id=site_id,
            date=start.date().isoformat(),
            total_views=total_views,
            unique_users=len(users),
            top_paths=[PathViews(path=path, views=views) for path, views in top_paths],
            generated_at=utc_now_iso(),
        )
