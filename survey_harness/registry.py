"""
Test data registry

Bookkeeping of identifiers created through one harness so a suite can tear
its own data down. Each harness owns one registry; nothing here is shared
across instances.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import ResourceKind

TRACKED_KINDS: Tuple[ResourceKind, ...] = (
    ResourceKind.COMPANY,
    ResourceKind.EMPLOYEE,
    ResourceKind.SURVEY,
    ResourceKind.EXPORT_JOB,
)


@dataclass(frozen=True)
class TestDataSnapshot:
    """Read-only view of a registry at one point in time"""
    __test__ = False

    companies: Tuple[Any, ...] = ()
    employees: Tuple[Any, ...] = ()
    surveys: Tuple[Any, ...] = ()
    export_jobs: Tuple[Any, ...] = ()

    @property
    def company_id(self) -> Optional[Any]:
        return self.companies[-1] if self.companies else None

    @property
    def survey_id(self) -> Optional[Any]:
        return self.surveys[-1] if self.surveys else None

    @property
    def employee_ids(self) -> List[Any]:
        return list(self.employees)

    @property
    def export_job_ids(self) -> List[Any]:
        return list(self.export_jobs)

    def is_empty(self) -> bool:
        return not (self.companies or self.employees or self.surveys or self.export_jobs)


@dataclass
class TestDataRegistry:
    __test__ = False

    _ids: Dict[ResourceKind, List[Any]] = field(
        default_factory=lambda: {kind: [] for kind in TRACKED_KINDS}
    )

    def _bucket(self, kind: ResourceKind) -> List[Any]:
        kind = ResourceKind(kind)
        if kind not in self._ids:
            raise ValueError(f"{kind.value} identifiers are not tracked")
        return self._ids[kind]

    def record(self, kind: ResourceKind, resource_id: Any) -> None:
        if resource_id is None:
            return
        bucket = self._bucket(kind)
        if resource_id not in bucket:
            bucket.append(resource_id)

    def record_many(self, kind: ResourceKind, resource_ids: Iterable[Any]) -> None:
        for resource_id in resource_ids:
            self.record(kind, resource_id)

    def discard(self, kind: ResourceKind, resource_id: Any) -> bool:
        bucket = self._bucket(kind)
        if resource_id in bucket:
            bucket.remove(resource_id)
            return True
        return False

    def ids(self, kind: ResourceKind) -> List[Any]:
        return list(self._bucket(kind))

    def snapshot(self) -> TestDataSnapshot:
        return TestDataSnapshot(
            companies=tuple(self._ids[ResourceKind.COMPANY]),
            employees=tuple(self._ids[ResourceKind.EMPLOYEE]),
            surveys=tuple(self._ids[ResourceKind.SURVEY]),
            export_jobs=tuple(self._ids[ResourceKind.EXPORT_JOB]),
        )

    def clear(self) -> None:
        for bucket in self._ids.values():
            bucket.clear()

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._ids.values())
