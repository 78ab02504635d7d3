"""
Application modules for the protected static cache service.
"""
