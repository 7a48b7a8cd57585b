"""
Observability utilities for retry_subscription.

Provides the composition-based tracer abstraction and the standard span
attribute names used by the retry loop.

Example:
    >>> from retry_subscription.observability import create_tracer
    >>>
    >>> class MyComponent:
    ...     def __init__(self, enable_tracing: bool = True):
    ...         self._tracer = create_tracer(__name__, enable_tracing)
"""

from retry_subscription.observability.attributes import (
    ATTR_ATTEMPT,
    ATTR_DELAY_MS,
    ATTR_ERROR_TYPE,
    ATTR_EVENTS_DELETED,
    ATTR_EVENTS_EMITTED,
    ATTR_KNOWN_KEYS,
    ATTR_SNAPSHOT_SIZE,
    ATTR_SUBSCRIPTION_INDEX,
)
from retry_subscription.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
    "ATTR_ATTEMPT",
    "ATTR_DELAY_MS",
    "ATTR_ERROR_TYPE",
    "ATTR_EVENTS_DELETED",
    "ATTR_EVENTS_EMITTED",
    "ATTR_KNOWN_KEYS",
    "ATTR_SNAPSHOT_SIZE",
    "ATTR_SUBSCRIPTION_INDEX",
]
