"""
Test suite for the article import backend.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_validation_service.py -v
"""
