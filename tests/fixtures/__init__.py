"""
Test Fixtures and Utilities

Shared test data and helpers:
- records: builders for remote-shaped rows of every entity kind
- fake_remote: in-memory remote with latency, failure injection and a call log

All test data is synthetic.
"""
