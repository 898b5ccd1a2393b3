"""Test fixtures for the GEX signal engine.

This package provides reusable test fixtures for:
- Option chains in flat and nested payload shapes
- Market clock values

Fixtures are auto-discovered by pytest through conftest.py.
"""
