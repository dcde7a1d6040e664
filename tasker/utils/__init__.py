"""Utility helpers for Tasker."""
