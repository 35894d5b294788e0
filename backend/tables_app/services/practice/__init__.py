"""
Times tables practice: scheduler, content generators and orchestration.
"""

from tables_app.services.practice.practice_service import PracticeService
from tables_app.services.practice.store import PracticeStore, SQLPracticeStore

__all__ = ["PracticeService", "PracticeStore", "SQLPracticeStore"]
