"""Core application components.

This module provides the foundational components for the tenantgate API:
- Authorization store interface and in-memory implementation
- Application settings and configuration
"""
