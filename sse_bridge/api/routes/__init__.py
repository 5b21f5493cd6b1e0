"""
API Routes
==========

Routers for the transport legs and health reporting.
"""
