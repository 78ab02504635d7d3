"""
Tests for the protected static cache service.
"""
