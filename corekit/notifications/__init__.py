"""Notification records, request payloads and request validation."""