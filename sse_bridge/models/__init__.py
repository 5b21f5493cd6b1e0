"""
Data Models
===========

Pydantic models for operation discovery and status reporting.
"""
