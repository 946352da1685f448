"""
Screen Solver Test Suite
========================

Run all tests:
    pytest tests/ -v

Run with coverage:
    pytest tests/ --cov=screen_solver --cov-report=html

Security note: These tests use fake providers and mocked SDK clients
and do not require real API keys.
"""
