"""
MCP Protocol Engine
===================

Per-session Model Context Protocol server exposing a backend's operations.
"""
