"""
Synthetic records for bulk operations and defaulted creates.

Every harness gets its own RecordFactory (and therefore its own Faker), so
parallel suites never share a seed or a uniqueness sequence.
"""
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from faker import Faker


class RecordFactory:
    def __init__(self, seed: Optional[int] = None, locale: str = "en_US"):
        self.fake = Faker(locale)
        if seed is not None:
            self.fake.seed_instance(seed)
        # Per-instance run tag keeps codes/emails unique across harnesses even with the same seed
        self._run_tag = uuid.uuid4().hex[:6].upper()
        self._sequence = 0

    def _next(self) -> int:
        self._sequence += 1
        return self._sequence

    def company(self, **overrides) -> Dict[str, Any]:
        n = self._next()
        name = self.fake.company()
        record = {
            "code": f"COMP{self._run_tag}{n:04d}",
            "slug": f"{self.fake.slug(name)}-{self._run_tag.lower()}-{n}",
            "name": f"Test Company {name}",
            "description": self.fake.sentence(),
            "phone": self.fake.numerify("+1##########"),
            "email": f"company{n}.{self._run_tag.lower()}@{self.fake.domain_name()}",
            "website": self.fake.url(),
        }
        record.update(overrides)
        return record

    def companies(self, count: int) -> List[Dict[str, Any]]:
        return [self.company() for _ in range(count)]

    def employee(self, **overrides) -> Dict[str, Any]:
        n = self._next()
        first = self.fake.first_name()
        last = self.fake.last_name()
        record = {
            "email": f"{re.sub(r'[^a-z0-9]', '', (first + last).lower())}.{self._run_tag.lower()}{n}@example.com",
            "firstname": first,
            "lastname": last,
            "phone": self.fake.numerify("+668########"),
            "preferredLocale": "EN",
        }
        record.update(overrides)
        return record

    def employees(self, count: int) -> List[Dict[str, Any]]:
        return [self.employee() for _ in range(count)]

    def survey(self, **overrides) -> Dict[str, Any]:
        n = self._next()
        now = datetime.now(timezone.utc)
        record = {
            "code": f"SURV{self._run_tag}{n:04d}",
            "name": f"Employee 360 Review {self.fake.catch_phrase()}",
            "description": self.fake.sentence(),
            "startDate": now.isoformat(),
            "endDate": (now + timedelta(days=30)).isoformat(),
            "requestEmail": True,
            "requestMobile": False,
        }
        record.update(overrides)
        return record
