"""Context aggregation for AI chat blocks."""

from .aggregator import (
    ContextAggregator,
    aggregate,
    format_context_for_ai,
    get_connected_blocks,
    group_members,
)
from .formatters import ContextFormatter, ContextFormatterRegistry, formatter_registry

__all__ = [
    "ContextAggregator",
    "aggregate",
    "format_context_for_ai",
    "get_connected_blocks",
    "group_members",
    "ContextFormatter",
    "ContextFormatterRegistry",
    "formatter_registry",
]
