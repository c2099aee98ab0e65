"""
Test Suite

This module contains all tests for the ProcessFlow backend.

Structure:
    tests/
    ├── __init__.py         # This file
    ├── conftest.py         # Pytest fixtures (in-memory storage)
    ├── unit/               # Engine, guards, services, memory repositories
    │   └── __init__.py
    └── integration/        # HTTP API and MongoDB repositories
        └── __init__.py

To run tests:
    pytest backend/tests/
    pytest backend/tests/unit/
    pytest backend/tests/integration/ -m "not mongo"
"""
