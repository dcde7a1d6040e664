"""Tasker services - input parsing, querying and collection management."""

from tasker.services.input_parser import format_parsed_input, parse, suggest
from tasker.services.query_engine import visible

__all__ = ["parse", "suggest", "format_parsed_input", "visible"]
