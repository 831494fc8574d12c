"""Sage plugin: prompt/response capture, skill suggestions and feedback."""

__version__ = "0.1.0"
