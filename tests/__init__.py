"""
Tollgate test suite.

This package contains tests for the Tollgate authorization engine:
- Constraint engine tests
- Permission store and query layer tests
- Resolution tests against both clipboards
- Multi-tenancy, context and ownership tests
- Cache store and cached clipboard tests
- Gate, guard and policy tests
"""
