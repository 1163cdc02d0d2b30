# backend/__init__.py
"""OpenAI client wrapper used for scoring, chat and speech."""
