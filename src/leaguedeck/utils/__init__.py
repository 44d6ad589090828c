"""
Shared utilities: errors and the event bus
"""
