"""
Tests Package - Unit and Integration Tests

Test structure:
- tests/unit/ - Fast, isolated unit tests (no database)
- tests/integration/ - Tests against a temporary SQLite database and a fake
  PX API served through httpx.MockTransport
- tests/conftest.py - Shared fixtures
"""
