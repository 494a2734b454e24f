"""
Tests for move accuracy analysis.

Running Tests:
    # Run all tests
    pytest tests/

    # Run specific test file
    pytest tests/test_session.py

Dependencies:
    - pytest: Test framework
    - pytest-asyncio: Coroutine tests

Engine tests run against tests/fixtures/fake_engine.py, a scripted UCI
engine, so no real engine binary is needed.
"""
