"""Data models for decoded device messages."""

from .device import LocationFix, LoginRequest
