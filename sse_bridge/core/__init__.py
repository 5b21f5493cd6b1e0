"""
Core Components
===============

Backend resolution and the bridge error taxonomy.
"""
