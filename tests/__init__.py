"""
Test suite for the talent admin backend.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_candidate_service.py -v
"""
