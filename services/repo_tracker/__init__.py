"""
Repository Tracker Service for GitStatViewer.

This service is responsible for:
- Synchronizing a GitHub repository's commit history into the commit store
- Polling the tracked repository for new commits
- Aggregating commit statistics for presentation
"""

__version__ = "1.0.0"
__description__ = "GitHub repository commit tracking and statistics service"
