"""Admission control and IP banning for HTTP APIs."""

__version__ = "0.1.0"
