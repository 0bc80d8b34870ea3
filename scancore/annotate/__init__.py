"""Offsite annotation document and its editing operations."""
