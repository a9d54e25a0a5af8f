"""
parcelsched test suite.

This package contains tests for the parcelsched scheduler:
- Time-value functions and valuation
- Least-lost-value scoring and ordering
- Scheduling policies (LLV, FIFO) and the factory
- Snapshot persistence
- Metrics and the dispatch loop
"""
