"""
Progression engine test suite.

- tests/unit/          : pure functions and mocked collaborators
- tests/integration/   : services against a real database (SQLite file per
                         test, or PostgreSQL via testcontainers when
                         ZD_TEST_DATABASE=postgres)

Select with markers: `pytest -m unit`, `pytest -m integration`.
"""
