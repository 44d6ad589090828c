"""
Summoner widget - Riot ID, level and XP progress
"""

from typing import Any, List, Optional

from .base import BaseWidget, WidgetId, WidgetKind


def riot_id(summoner: Any) -> Optional[str]:
    """gameName#tagLine of a summoner payload, if both parts are present"""
    if not isinstance(summoner, dict):
        return None
    game_name = summoner.get("gameName")
    tag_line = summoner.get("tagLine")
    if not game_name or not tag_line:
        return None
    return f"{game_name}#{tag_line}"


def level_progress(summoner: dict) -> Optional[int]:
    """Percent towards the next level"""
    percent = summoner.get("percentCompleteForNextLevel")
    if percent:
        return int(percent)

    since = summoner.get("xpSinceLastLevel") or 0
    until = summoner.get("xpUntilNextLevel") or 0
    if since + until <= 0:
        return None
    return int(since * 100 / (since + until))


class SummonerWidget(BaseWidget):
    kind = WidgetKind.SUMMONER
    data_type = "summoner"
    label = "Summoner"

    def render_lines(self, data: Any, widget_id: WidgetId) -> Optional[List[str]]:
        if not isinstance(data, dict):
            return None

        name = riot_id(data) or data.get("displayName") or "Summoner"
        lines = [name]

        level = data.get("summonerLevel")
        if level:
            lines.append(f"Level {level}")

        progress = level_progress(data)
        if progress is not None:
            lines.append(f"XP {progress}%")
        return lines
