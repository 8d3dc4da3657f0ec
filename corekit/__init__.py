"""Core application building blocks: authorization, media, notifications and pagination."""

__version__ = "0.1.0"