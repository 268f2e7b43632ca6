"""
External integrations (notification sinks).
"""
