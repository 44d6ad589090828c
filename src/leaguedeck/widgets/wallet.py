"""
Wallet widget - Riot Points and Blue Essence
"""

from typing import Any, List, Optional, Tuple

from .base import BaseWidget, WidgetId, WidgetKind


def wallet_balances(wallet: Any) -> Tuple[int, int]:
    """(RP, BE); the client has used several key spellings over time"""
    if not isinstance(wallet, dict):
        return 0, 0
    rp = wallet.get("rp") or wallet.get("RP") or 0
    be = wallet.get("ip") or wallet.get("IP") or wallet.get("lol_blue_essence") or 0
    return int(rp), int(be)


class WalletWidget(BaseWidget):
    kind = WidgetKind.WALLET
    data_type = "wallet"
    label = "Wallet"
    background_color = "#1E2328"

    def render_lines(self, data: Any, widget_id: WidgetId) -> Optional[List[str]]:
        if not isinstance(data, dict):
            return None
        rp, be = wallet_balances(data)
        return [f"RP {rp:,}", f"BE {be:,}"]
