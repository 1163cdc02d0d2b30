# system/__init__.py
"""Process configuration and logging setup."""
