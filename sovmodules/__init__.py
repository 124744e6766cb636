"""A module system for rollup state machines: prefixed state, cached storage and message dispatch."""

__version__ = "0.1.0"