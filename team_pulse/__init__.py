"""
Team Pulse - GitHub Issue/PR synchronization and team-health scoring.
"""

__version__ = "0.1.0"
