"""
In-match widgets fed by the live client API.
"""

from typing import Any, Dict, List, Optional

from ..client.live import LiveGameSnapshot
from .base import BaseWidget, LiveWidget, WidgetId, WidgetKind


def team_kills(player_list: Any) -> Dict[str, int]:
    kills = {"ORDER": 0, "CHAOS": 0}
    if not isinstance(player_list, list):
        return kills

    for player in player_list:
        if not isinstance(player, dict):
            continue
        team = player.get("team")
        score = (player.get("scores") or {}).get("kills")
        if team and isinstance(score, int):
            kills[team] = kills.get(team, 0) + score
    return kills


def find_player_team(player_list: Any, riot_id: Optional[str]) -> Optional[str]:
    if not isinstance(player_list, list) or not riot_id:
        return None
    for player in player_list:
        if isinstance(player, dict) and player.get("riotId") == riot_id:
            return player.get("team")
    return None


def kda_ratio(kills: int, deaths: int, assists: int) -> float:
    if deaths == 0:
        return float(kills + assists)
    return (kills + assists) / deaths


class TeamKillsWidget(LiveWidget):
    kind = WidgetKind.TEAMKILLS
    label = "Team Kills"

    def render_lines(self, data: LiveGameSnapshot, widget_id: WidgetId) -> Optional[List[str]]:
        if not data.player_list:
            return None
        kills = team_kills(data.player_list)
        lines = [self.label, f"{kills['ORDER']} vs {kills['CHAOS']}"]

        team = find_player_team(data.player_list, data.riot_id)
        if team:
            lines.append("Blue side" if team == "ORDER" else "Red side")
        return lines


class KdaWidget(LiveWidget):
    kind = WidgetKind.KDA
    label = "KDA"

    def render_lines(self, data: LiveGameSnapshot, widget_id: WidgetId) -> Optional[List[str]]:
        if not isinstance(data.scores, dict):
            return None
        kills = data.scores.get("kills") or 0
        deaths = data.scores.get("deaths") or 0
        assists = data.scores.get("assists") or 0
        return [
            self.label,
            f"{kills}/{deaths}/{assists}",
            f"{kda_ratio(kills, deaths, assists):.1f} KDA",
        ]


class WardScoreWidget(LiveWidget):
    kind = WidgetKind.WARDSCORE
    label = "Ward Score"

    def render_lines(self, data: LiveGameSnapshot, widget_id: WidgetId) -> Optional[List[str]]:
        if not isinstance(data.scores, dict):
            return None
        score = data.scores.get("wardScore")
        if not isinstance(score, (int, float)):
            return None
        return [self.label, f"{score:.0f}"]


class GameStatsWidget(BaseWidget):
    """Placeholder key until per-game stats land"""

    kind = WidgetKind.GAMESTATS
    label = "Game Stats"

    def render_lines(self, data: Any, widget_id: WidgetId) -> Optional[List[str]]:
        return [self.label, "Coming Soon"]
