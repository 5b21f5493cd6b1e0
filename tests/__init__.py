"""
Test Suite
==========

Unit and integration tests for the SSE tool bridge.
"""
