from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ResourceKind(str, Enum):
    COMPANY = "company"
    EMPLOYEE = "employee"
    SURVEY = "survey"
    QUESTION = "question"
    EXPORT_JOB = "export_job"


class ExportJobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ExportJobStatus"]:
        """Backoffice status strings come in either case (PENDING / pending)."""
        if value is None:
            return None
        try:
            return cls(str(value).lower())
        except ValueError:
            return None

    @property
    def is_terminal(self) -> bool:
        return self in (ExportJobStatus.COMPLETED, ExportJobStatus.FAILED)


class ExportFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
    JSON = "json"
    PDF = "pdf"
    PPTX = "pptx"

    @property
    def is_binary(self) -> bool:
        return self in (ExportFormat.XLSX, ExportFormat.PDF, ExportFormat.PPTX)


@dataclass
class ListParams:
    search: Optional[str] = None
    status: Optional[str] = None
    locale: Optional[str] = None
    page: Optional[int] = None
    limit: Optional[int] = None

    def __post_init__(self):
        if self.page is not None:
            self.page = max(1, self.page)
        if self.limit is not None:
            self.limit = min(max(1, self.limit), 100)

    def to_query(self) -> Dict[str, Any]:
        query = {
            "search": self.search,
            "status": self.status,
            "locale": self.locale,
            "page": self.page,
            "limit": self.limit,
        }
        return {k: v for k, v in query.items() if v is not None}


class Page(BaseModel):
    """Listing body: `{data: [...], meta: {...}}` or `{data: [...], pagination: {...}}`"""
    model_config = ConfigDict(extra="allow")

    data: List[Any] = Field(default_factory=list)
    meta: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("meta", "pagination")
    )

    @property
    def has_meta(self) -> bool:
        return self.meta is not None
