"""
Configuration Management
=======================

Environment-based configuration using Pydantic Settings.

Components:
- settings: Bridge settings and environment configuration
- logging: Structured logging configuration
"""
