"""
Centralized enum definitions for the application.

Usage:
    from tables_app.enums import SessionMode, Theme, RewardKind
"""

from tables_app.enums.practice import (
    RewardKind,
    SessionMode,
    Theme,
)

__all__ = [
    "RewardKind",
    "SessionMode",
    "Theme",
]
