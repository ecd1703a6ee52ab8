"""
Test suite for Resilient Embed.

This package contains all tests organized by component:
- test_providers/: Tests for embedding providers and error classification
- test_services/: Tests for batching, retry, pipeline and idempotency services
- test_db/: Tests for the database connection and repositories
- test_utils/: Tests for text helpers and logging
"""
