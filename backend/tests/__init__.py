"""
Times Tables Test Suite

Test Structure:
    tests/
    ├── conftest.py          # Shared fixtures, FakePracticeStore
    └── unit/                # Unit tests (no external services)
        ├── test_scheduler.py         # Update rule, batch selection, seeding
        ├── test_hints.py             # Hint cascade
        ├── test_problems.py          # Word problems
        ├── test_rewards.py           # Coins, session score, operands, catalog
        ├── test_practice_service.py  # Orchestration on the in-memory store
        ├── test_store.py             # SQLPracticeStore on SQLite (aiosqlite)
        ├── test_tables_router.py     # HTTP contract via TestClient
        ├── test_models.py            # Request/response schemas
        └── test_config.py            # Settings and YAML config

Running Tests:
    # Run all tests
    pytest backend/tests/ -v

    # Run with coverage
    pytest backend/tests/ --cov=tables_app --cov-report=html
"""
