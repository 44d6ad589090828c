"""
Rank widget with per-key queue selection.

When several rank keys are placed, the first defaults to Solo/Duo, the next
to Flex, and further keys to whatever queue is still unused. Pressing a key
cycles it through the queues that have ranked data.
"""

import logging
from typing import Any, Dict, List, Optional

from .base import BaseWidget, WidgetContext, WidgetId, WidgetKind

logger = logging.getLogger(__name__)

SOLO = "RANKED_SOLO_5x5"
FLEX = "RANKED_FLEX_SR"
FLEX_TT = "RANKED_FLEX_TT"

QUEUE_PRIORITY = [SOLO, FLEX, FLEX_TT]

QUEUE_NAMES = {
    SOLO: "Solo/Duo",
    FLEX: "Flex",
    FLEX_TT: "Flex 3v3",
}

APEX_TIERS = ("MASTER", "GRANDMASTER", "CHALLENGER")


def _is_ranked(entry: Any) -> bool:
    return isinstance(entry, dict) and bool(entry.get("tier")) and entry["tier"] != "UNRANKED"


def available_queues(ranked_data: Any) -> List[str]:
    """Queues in priority order that have a real rank"""
    if not isinstance(ranked_data, dict):
        return []
    queue_map = ranked_data.get("queueMap") or {}
    return [queue for queue in QUEUE_PRIORITY if _is_ranked(queue_map.get(queue))]


def ranked_entry(ranked_data: Any, queue: Optional[str]) -> Optional[Dict[str, Any]]:
    if not queue or not isinstance(ranked_data, dict):
        return None
    entry = (ranked_data.get("queueMap") or {}).get(queue)
    if not _is_ranked(entry):
        return None
    return {**entry, "queueType": queue}


def best_ranked_entry(ranked_data: Any) -> Optional[Dict[str, Any]]:
    """Highest priority ranked queue, else any ranked queue"""
    queues = available_queues(ranked_data)
    if queues:
        return ranked_entry(ranked_data, queues[0])
    if isinstance(ranked_data, dict):
        for queue, entry in (ranked_data.get("queueMap") or {}).items():
            if _is_ranked(entry):
                return {**entry, "queueType": queue}
    return None


def format_rank(entry: Optional[Dict[str, Any]]) -> str:
    if not entry or not entry.get("tier"):
        return "Unranked"

    tier = entry["tier"]
    lp = entry.get("leaguePoints") or 0
    if tier in APEX_TIERS:
        return f"{tier} {lp} LP"
    return f"{tier} {entry.get('division') or ''} • {lp} LP"


class QueueSelector:
    """Queue shown by each rank key, keyed by WidgetId."""

    def __init__(self):
        self.selections: Dict[WidgetId, str] = {}

    def default_queue(self, widget_id: WidgetId, available: List[str]) -> Optional[str]:
        if not available:
            return None

        used = [
            queue
            for other, queue in self.selections.items()
            if other != widget_id and queue in available
        ]
        if not used or len(available) == 1:
            return available[0]

        if SOLO in used and FLEX in available and FLEX not in used:
            logger.info(f"Assigning Flex queue to rank key {widget_id} (Solo/Duo already in use)")
            return FLEX
        if FLEX in used and SOLO in available and SOLO not in used:
            logger.info(f"Assigning Solo/Duo queue to rank key {widget_id} (Flex already in use)")
            return SOLO

        for queue in QUEUE_PRIORITY:
            if queue in available and queue not in used:
                return queue

        return available[0]

    def current(self, widget_id: WidgetId, ranked_data: Any) -> Optional[str]:
        """Selected queue, re-assigned when the stored one has no data"""
        available = available_queues(ranked_data)
        if not available:
            return None

        selected = self.selections.get(widget_id)
        if selected not in available:
            selected = self.default_queue(widget_id, available)
            self.selections[widget_id] = selected
        return selected

    def cycle(self, widget_id: WidgetId, ranked_data: Any) -> Optional[str]:
        available = available_queues(ranked_data)
        current = self.current(widget_id, ranked_data)
        if len(available) <= 1:
            return current

        next_queue = available[(available.index(current) + 1) % len(available)]
        self.selections[widget_id] = next_queue
        logger.info(f"Cycled rank key {widget_id} to queue {next_queue}")
        return next_queue

    def forget(self, widget_id: WidgetId) -> None:
        self.selections.pop(widget_id, None)

    def forget_device(self, device_id: str) -> None:
        for widget_id in [w for w in self.selections if w.device_id == device_id]:
            del self.selections[widget_id]


class RankWidget(BaseWidget):
    kind = WidgetKind.RANK
    data_type = "ranked"
    label = "Rank"
    background_color = "#3C2A4D"

    def __init__(self, surface):
        super().__init__(surface)
        self.queues = QueueSelector()

    def render_lines(self, data: Any, widget_id: WidgetId) -> Optional[List[str]]:
        queue = self.queues.current(widget_id, data)
        entry = ranked_entry(data, queue) if queue else best_ranked_entry(data)
        if entry is None:
            return ["Unranked"]

        queue_name = QUEUE_NAMES.get(entry["queueType"], entry["queueType"])
        wins = entry.get("wins") or 0
        losses = entry.get("losses") or 0
        return [queue_name, format_rank(entry), f"{wins}W {losses}L"]

    def on_interact(self, widget_id: WidgetId, context: WidgetContext) -> None:
        data = context.data(self.data_type)
        if data is not None:
            self.queues.cycle(widget_id, data)
        self.refresh(widget_id, context)

    def forget(self, widget_id: WidgetId) -> None:
        self.queues.forget(widget_id)

    def forget_device(self, device_id: str) -> None:
        self.queues.forget_device(device_id)
