"""Tasker - a personal task manager with quick-add syntax and smart lists."""

__version__ = "0.1.0"
