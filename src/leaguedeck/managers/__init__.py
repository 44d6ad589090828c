"""
Long-running managers: connection, polling, live game and widget rendering
"""
