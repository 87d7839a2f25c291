"""
Animochi Quest Ledger Test Suite
================================

Test Organization
-----------------
- tests/unit/          : Fast tests; pure domain code plus services on a temporary SQLite file
- tests/integration/   : Tests against PostgreSQL in a testcontainer (opt-in: -m integration)

Testing Philosophy
------------------
- Unit tests: Fast, isolated, test business logic
- Integration tests: Slower, test real infrastructure interactions
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
