"""
FastAPI Endpoints
=================

HTTP surface of the bridge.

Endpoints:
- GET /sse: Open a streaming session (credential via ?apiKey= in multi-tenant mode)
- POST /messages?sessionId=<id>: Deliver one client message to a session
- GET /health: Health check endpoint
- GET /stats: Session and backend statistics
"""
