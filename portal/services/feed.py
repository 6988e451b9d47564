"""Visible activity list: store contents minus expired entries, by due date."""
import datetime
import inspect
from typing import Awaitable, Callable, Optional, Union

from portal.models.activity import Activity
from portal.services.expiry import filter_live
from portal.stores.base import ActivityStore

FeedListener = Callable[[list[Activity]], Union[None, Awaitable[None]]]


class ActivityFeed:
    """Reads always go to the store; nothing is cached between calls."""

    def __init__(self, store: ActivityStore, today: Callable[[], datetime.date] = datetime.date.today):
        self.store = store
        self._today = today

    def today(self) -> datetime.date:
        return self._today()

    async def get_visible_activities(self, today: Optional[datetime.date] = None) -> list[Activity]:
        """Raises StoreUnavailable when the backend cannot be read."""
        activities = await self.store.list()
        return filter_live(activities, today or self.today())

    def subscribe(self, on_change: FeedListener) -> Callable[[], None]:
        """Call `on_change` with the recomputed visible list on every store change."""

        async def listener(activities: list[Activity]) -> None:
            result = on_change(filter_live(activities, self.today()))
            if inspect.isawaitable(result):
                await result

        return self.store.subscribe(listener)
