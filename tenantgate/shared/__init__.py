"""Shared utilities and cross-domain components.

This module contains utilities used across multiple domains:
- Exception classes for consistent denial responses
- Permission system for role-based access control
"""
