"""Timed PDF exams behind expiring share links."""

__version__ = "1.0.0"
