"""Concrete infrastructure implementations and shared helpers."""

from .cache import ResponseCache, fingerprint
from .connectivity import ConnectivityMonitor
from .credentials import InMemoryCredentialStore, JsonFileCredentialStore
from .interceptors import Interceptor, InterceptorPipeline, LoggingInterceptor, TimingInterceptor
from .resilience import RetryPolicy
from .scheduling import PeriodicTask
from .transport import RequestsTransport, TransportRequest, TransportResponse

__all__ = [
    "ConnectivityMonitor",
    "InMemoryCredentialStore",
    "Interceptor",
    "InterceptorPipeline",
    "JsonFileCredentialStore",
    "LoggingInterceptor",
    "PeriodicTask",
    "RequestsTransport",
    "ResponseCache",
    "RetryPolicy",
    "TimingInterceptor",
    "TransportRequest",
    "TransportResponse",
    "fingerprint",
]
