"""
API test harness for the survey backoffice

Provides an authenticated, per-suite façade over the backoffice HTTP API:
- Login / bearer-token injection with immutable session config
- CRUD and action calls for companies, employees, surveys, exports, reports
- Per-instance registry of created identifiers for teardown
"""

from .config import HarnessConfig
from .errors import ApiError
from .harness import ApiHarness
from .models import ExportFormat, ExportJobStatus, ListParams, Page, ResourceKind
from .registry import TestDataRegistry, TestDataSnapshot

__all__ = [
    'ApiHarness',
    'ApiError',
    'HarnessConfig',
    'ExportFormat',
    'ExportJobStatus',
    'ListParams',
    'Page',
    'ResourceKind',
    'TestDataRegistry',
    'TestDataSnapshot',
]
