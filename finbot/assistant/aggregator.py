"""Turn Aggregator - media-group debounce in front of the conversation loop.

Parts of one user action (several photos sent together) arrive as
separate events sharing a group id. The first event opens a buffer and
starts a quiet-period timer. Later events for the same group only extend
the buffer. When the timer fires (or flush() is called) the merged parts
are released to the loop exactly once and the group is forgotten.

The wait holds no per-thread lock, so other turns keep running.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


ReleaseCallback = Callable[[str, List[Any]], Awaitable[Any]]


@dataclass
class PendingGroup:
    """Buffered parts of one media group."""
    thread_id: str
    parts: List[Any]
    result: asyncio.Future
    timer: Optional[asyncio.Task] = None
    events: int = 1


class TurnAggregator:
    """Keyed registry of pending media groups."""

    def __init__(self, release: ReleaseCallback, quiet_seconds: float = 3.0):
        self._release = release
        self.quiet_seconds = quiet_seconds
        self._pending: Dict[str, PendingGroup] = {}

    def is_pending(self, group_id: str) -> bool:
        return group_id in self._pending

    async def submit_part(self, thread_id: str, parts: List[Any], group_id: Optional[str] = None) -> Optional[Any]:
        """
        Accept one event.

        Returns:
            The release result (the assistant reply) for an ungrouped event
            or for the event that opened the group; None for events merged
            into a group that is already pending.
        """
        if group_id is None:
            return await self._release(thread_id, list(parts))

        group = self._pending.get(group_id)
        if group is not None:
            group.parts.extend(parts)
            group.events += 1
            logger.debug(f"Merged part into media group {group_id} ({group.events} events)")
            return None

        group = PendingGroup(
            thread_id=thread_id,
            parts=list(parts),
            result=asyncio.get_running_loop().create_future(),
        )
        self._pending[group_id] = group
        group.timer = asyncio.create_task(self._release_after_quiet(group_id))
        logger.debug(f"Media group {group_id} pending for {self.quiet_seconds}s")
        return await group.result

    async def flush(self, group_id: str) -> Optional[Any]:
        """Release a pending group now. Returns None if the group is not pending."""
        group = self._pending.get(group_id)
        if group is None:
            return None
        if group.timer is not None and group.timer is not asyncio.current_task():
            group.timer.cancel()
        await self._release_group(group_id)
        return await group.result

    async def _release_after_quiet(self, group_id: str) -> None:
        await asyncio.sleep(self.quiet_seconds)
        await self._release_group(group_id)

    async def _release_group(self, group_id: str) -> None:
        # Popping first makes the release happen at most once; a part that
        # arrives after this point opens a new group.
        group = self._pending.pop(group_id, None)
        if group is None:
            return
        logger.info(f"Releasing media group {group_id}: {len(group.parts)} parts from {group.events} events")
        try:
            reply = await self._release(group.thread_id, group.parts)
        except Exception as e:
            if not group.result.done():
                group.result.set_exception(e)
            return
        if not group.result.done():
            group.result.set_result(reply)
