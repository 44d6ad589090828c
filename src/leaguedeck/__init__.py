"""
leaguedeck - League of Legends client widgets for Stream Deck
"""

__version__ = "1.0.0"

from .controller import LeagueDeckController

__all__ = ["LeagueDeckController"]
