"""
OpenTelemetry auto-instrumentation injector.

Subpackages:
- instrumentation: pod mutation engine and runtime profiles
- allocator: scrape target identity
"""

__version__ = "0.1.0"
