"""Scheduling for periodic burn data refresh."""
