"""Kernel — deferred execution primitives (debounce + cancellation tokens)."""

from sage_plugin.kernel.debounce import CancellationToken, Debouncer, GenerationCounter

__all__ = ["CancellationToken", "Debouncer", "GenerationCounter"]
