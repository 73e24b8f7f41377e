"""
Tracing decorator for entry points.
"""

import functools

from .context import trace_operation


def trace_function(operation_name: str | None = None, **default_attributes):
    """
    Run every call of the decorated function inside its own span.

    The span is named ``operation_name`` (or the function's qualified
    name) and carries ``code.function`` / ``code.namespace`` alongside
    ``default_attributes``.

    Example:
        >>> class SyncOrchestrator:
        ...     @trace_function("sync_run", component="orchestrator")
        ...     def run(self, full_reindex=False): ...
    """
    def decorator(func):
        name = operation_name or func.__qualname__
        code_attributes = {
            "code.function": func.__name__,
            "code.namespace": func.__module__,
        }

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with trace_operation(name, **default_attributes, **code_attributes):
                return func(*args, **kwargs)

        return wrapper
    return decorator
