"""
Event routing from data events to widgets
"""

from .router import EventRouter

__all__ = ["EventRouter"]
