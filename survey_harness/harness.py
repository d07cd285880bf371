"""
API Test Harness

Authenticated façade over the survey backoffice HTTP API used by the test
suites:
- Login and bearer-token injection
- CRUD and action calls for companies, employees, surveys, questions,
  assignments, export jobs, and reports
- Per-instance bookkeeping of created identifiers for teardown

The harness never retries, polls, or reinterprets errors: every non-2xx
answer is raised as ApiError with the remote status and body intact, and
transport failures propagate as the httpx exceptions they are.
"""

import time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import httpx

from .config import HarnessConfig
from .errors import ApiError
from .factories import RecordFactory
from .models import ExportFormat, ListParams, Page, ResourceKind
from .registry import TestDataRegistry, TestDataSnapshot
from .utils.logger import logger

JSON_CONTENT_TYPES = ("application/json", "+json")
TOKEN_KEYS = ("token", "accessToken", "access_token")
TEARDOWN_ORDER = (
    ResourceKind.EXPORT_JOB,
    ResourceKind.SURVEY,
    ResourceKind.EMPLOYEE,
    ResourceKind.COMPANY,
)

Records = Union[int, Sequence[Dict[str, Any]]]


def _unwrap(body: Any) -> Any:
    """Single-resource answers arrive as `{data: {...}}`; hand back the resource."""
    if isinstance(body, dict) and "data" in body and isinstance(body["data"], (dict, list)):
        return body["data"]
    return body


def _as_list(body: Any) -> List[Any]:
    if body is None:
        return []
    if isinstance(body, list):
        return body
    return Page.model_validate(body).data


def _resource_id(resource: Any, *keys: str) -> Optional[Any]:
    if not isinstance(resource, dict):
        return None
    for key in keys or ("id",):
        if resource.get(key) is not None:
            return resource[key]
    return None


def _extract_token(body: Any) -> Optional[str]:
    candidates = [body]
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        candidates.append(body["data"])
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        for key in TOKEN_KEYS:
            if candidate.get(key):
                return candidate[key]
    if isinstance(body, str) and body:
        return body
    return None


class ApiHarness:
    """
    One harness per suite. Construct without a token and call `login()`, or
    construct with `HarnessConfig(token=...)` / `authenticated(token)` to start
    out authenticated.
    """

    def __init__(
        self,
        config: Optional[HarnessConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **overrides,
    ):
        """
        Args:
            config: Session settings (defaults to HarnessConfig.from_env())
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests
            **overrides: base_url / token / timeout_ms etc. applied over the environment
                when no config is given
        """
        if config is None:
            config = HarnessConfig.from_env(**overrides)
        elif overrides:
            raise TypeError("Pass either a config or keyword overrides, not both")
        self._config = config
        self._transport = transport
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            transport=transport,
            follow_redirects=True,
        )
        self._registry = TestDataRegistry()
        # Employees are only addressable through their company
        self._employee_company: Dict[Any, Any] = {}
        self.records = RecordFactory(seed=config.faker_seed)
        self._log = logger.bind(base_url=config.base_url)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def config(self) -> HarnessConfig:
        return self._config

    @property
    def token(self) -> Optional[str]:
        return self._config.token

    @property
    def is_authenticated(self) -> bool:
        return bool(self._config.token)

    @property
    def api(self) -> httpx.AsyncClient:
        """Underlying client for ad hoc calls; prefer `request` so the token is attached."""
        return self._client

    def authenticated(self, token: str) -> "ApiHarness":
        """A fresh harness carrying `token`; this instance is left untouched."""
        return ApiHarness(self._config.with_token(token), transport=self._transport)

    def get_api_config(self) -> Dict[str, Any]:
        return {"base_url": self._config.base_url, "timeout": self._config.timeout_ms}

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiHarness":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _auth_headers(self) -> Dict[str, str]:
        if not self._config.token:
            return {}
        return {"Authorization": f"Bearer {self._config.token}"}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        expect_binary: bool = False,
    ) -> Any:
        """
        Send one request and return the decoded body.

        JSON answers are parsed, other content types (spreadsheets, PDFs,
        slides, CSV when asked for binary) come back as bytes, and empty
        answers as None.

        Raises:
            ApiError: the backoffice answered with a non-2xx status
            httpx.TransportError: no answer at all (network failure, timeout)
        """
        started = time.monotonic()
        response = await self._client.request(
            method,
            path,
            params=params,
            json=json,
            headers=self._auth_headers(),
        )
        self._log.debug(
            f"{method} {path} -> {response.status_code} "
            f"({int((time.monotonic() - started) * 1000)}ms)"
        )
        if not response.is_success:
            raise ApiError(response)
        return self._decode(response, expect_binary)

    @staticmethod
    def _decode(response: httpx.Response, expect_binary: bool) -> Any:
        if not response.content:
            return None
        content_type = response.headers.get("content-type", "")
        is_json = any(marker in content_type for marker in JSON_CONTENT_TYPES)
        if expect_binary and not is_json:
            return response.content
        if is_json:
            return response.json()
        if content_type.startswith("text/"):
            return response.text
        return response.content

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, username: Optional[str] = None, password: Optional[str] = None) -> str:
        """
        Authenticate and keep the bearer token on this harness.

        Falls back to the configured admin credentials when none are given.
        A failed login raises ApiError (4xx for bad credentials, 429 when the
        backoffice rate-limits); there is no retry here.
        """
        if username is None:
            username = self._config.admin_username
        if password is None:
            password = self._config.admin_password

        body = await self.request(
            "POST",
            self._config.login_path,
            json={"username": username, "password": password},
        )
        token = _extract_token(body)
        if not token:
            raise ValueError(f"Login succeeded but no token was found in the response: {body!r}")

        self._config = self._config.with_token(token)
        self._log.info(f"Authenticated against {self._config.base_url} as {username}")
        return token

    async def health_check(self) -> bool:
        try:
            await self.request("GET", "/health")
        except ApiError:
            return False
        return True

    # ------------------------------------------------------------------
    # Companies
    # ------------------------------------------------------------------

    async def create_company(
        self, data: Optional[Dict[str, Any]] = None, *, fill_defaults: bool = True
    ) -> Dict[str, Any]:
        """
        Create a company. Fields not given are filled from the record factory
        unless `fill_defaults` is False, in which case `data` goes out as is.
        """
        payload = self.records.company(**(data or {})) if fill_defaults else dict(data or {})
        company = _unwrap(await self.request("POST", "/admin/company", json=payload))
        self._registry.record(ResourceKind.COMPANY, _resource_id(company))
        return company

    async def get_company(self, company_id: Any) -> Dict[str, Any]:
        return _unwrap(await self.request("GET", f"/admin/company/{company_id}"))

    async def update_company(self, company_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        return _unwrap(await self.request("PUT", f"/admin/company/{company_id}", json=data))

    async def delete_company(self, company_id: Any) -> Any:
        result = await self.request("DELETE", f"/admin/company/{company_id}")
        self._registry.discard(ResourceKind.COMPANY, company_id)
        return result

    async def list_companies(self, params: Optional[ListParams] = None) -> List[Dict[str, Any]]:
        query = params.to_query() if params else None
        return _as_list(await self.request("GET", "/admin/company", params=query))

    async def search_companies(self, term: str) -> Dict[str, Any]:
        return await self.request("GET", "/admin/company", params=ListParams(search=term).to_query())

    async def get_companies_by_status(self, status: str) -> Dict[str, Any]:
        return await self.request("GET", "/admin/company", params=ListParams(status=status).to_query())

    async def suspend_company(self, company_id: Any) -> Any:
        return _unwrap(await self.request("POST", f"/admin/company/{company_id}/suspend"))

    async def activate_company(self, company_id: Any) -> Any:
        return _unwrap(await self.request("POST", f"/admin/company/{company_id}/activate"))

    async def create_department(self, company_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        return _unwrap(await self.request("POST", f"/admin/company/{company_id}/department", json=data))

    async def create_position(self, company_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        return _unwrap(await self.request("POST", f"/admin/company/{company_id}/position", json=data))

    async def bulk_create_companies(self, companies: Records) -> List[Dict[str, Any]]:
        """
        Create companies in one call.

        Args:
            companies: a count to generate that many synthetic companies, or
                pre-built records forwarded as they are
        """
        payload = self._bulk_payload(companies, self.records.companies)
        created = _as_list(await self.request("POST", "/admin/company/bulk/create", json={"companies": payload}))
        self._registry.record_many(ResourceKind.COMPANY, (_resource_id(c) for c in created))
        return created

    async def bulk_update_companies(self, companies: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return _as_list(await self.request("PUT", "/admin/company/bulk/update", json={"companies": list(companies)}))

    async def bulk_delete_companies(self, company_ids: Iterable[Any]) -> Any:
        company_ids = list(company_ids)
        result = await self.request("POST", "/admin/company/bulk/delete", json={"ids": company_ids})
        for company_id in company_ids:
            self._registry.discard(ResourceKind.COMPANY, company_id)
        return result

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    async def create_employee(self, company_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        employee = _unwrap(
            await self.request("POST", f"/admin/company/{company_id}/employees", json=data)
        )
        self._track_employees(company_id, [employee])
        return employee

    async def get_employee(self, company_id: Any, employee_id: Any) -> Dict[str, Any]:
        return _unwrap(await self.request("GET", f"/admin/company/{company_id}/employees/{employee_id}"))

    async def update_employee(self, company_id: Any, employee_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        return _unwrap(
            await self.request("PUT", f"/admin/company/{company_id}/employees/{employee_id}", json=data)
        )

    async def delete_employee(self, company_id: Any, employee_id: Any) -> Any:
        result = await self.request("DELETE", f"/admin/company/{company_id}/employees/{employee_id}")
        self._registry.discard(ResourceKind.EMPLOYEE, employee_id)
        self._employee_company.pop(employee_id, None)
        return result

    async def list_employees(self, company_id: Any, params: Optional[ListParams] = None) -> Dict[str, Any]:
        query = params.to_query() if params else None
        return await self.request("GET", f"/admin/company/{company_id}/employees", params=query)

    async def bulk_create_employees(self, company_id: Any, employees: Records) -> List[Dict[str, Any]]:
        """
        Create employees under a company in one call.

        Args:
            company_id: Owning company
            employees: a count to generate that many employees with unique
                emails, or pre-built records forwarded as they are
        """
        payload = self._bulk_payload(employees, self.records.employees)
        created = _as_list(
            await self.request(
                "POST", f"/admin/company/{company_id}/employees/bulk/create", json={"employees": payload}
            )
        )
        self._track_employees(company_id, created)
        return created

    def _track_employees(self, company_id: Any, employees: Sequence[Any]) -> None:
        for employee in employees:
            employee_id = _resource_id(employee)
            if employee_id is None:
                continue
            self._registry.record(ResourceKind.EMPLOYEE, employee_id)
            self._employee_company[employee_id] = company_id

    @staticmethod
    def _bulk_payload(records: Records, generate) -> List[Dict[str, Any]]:
        if isinstance(records, bool):
            raise TypeError("Expected a record count or a sequence of records")
        if isinstance(records, int):
            if records <= 0:
                raise ValueError(f"Bulk count must be positive, got {records}")
            return generate(records)
        return list(records)

    # ------------------------------------------------------------------
    # Surveys
    # ------------------------------------------------------------------

    async def create_survey(self, data: Dict[str, Any]) -> Dict[str, Any]:
        survey = _unwrap(await self.request("POST", "/admin/survey", json=data))
        self._registry.record(ResourceKind.SURVEY, _resource_id(survey))
        return survey

    async def get_survey(
        self,
        survey_id: Any,
        locale: Optional[str] = None,
        *,
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Admin view by default; with a locale and/or a visitor token, the
        survey-taking view a respondent would see.
        """
        if locale is None and token is None:
            return _unwrap(await self.request("GET", f"/admin/survey/{survey_id}"))
        params = {k: v for k, v in (("locale", locale), ("token", token)) if v is not None}
        return _unwrap(await self.request("GET", f"/survey/{survey_id}", params=params))

    async def update_survey(self, survey_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        return _unwrap(await self.request("PUT", f"/admin/survey/{survey_id}", json=data))

    async def delete_survey(self, survey_id: Any) -> Any:
        result = await self.request("DELETE", f"/admin/survey/{survey_id}")
        self._registry.discard(ResourceKind.SURVEY, survey_id)
        return result

    async def list_surveys(self, params: Optional[ListParams] = None) -> List[Dict[str, Any]]:
        query = params.to_query() if params else None
        return _as_list(await self.request("GET", "/admin/survey", params=query))

    async def activate_survey(self, survey_id: Any) -> Dict[str, Any]:
        return _unwrap(await self.request("POST", f"/admin/survey/{survey_id}/activate"))

    async def deactivate_survey(self, survey_id: Any) -> Dict[str, Any]:
        return _unwrap(await self.request("POST", f"/admin/survey/{survey_id}/deactivate"))

    async def delist_survey(self, survey_id: Any) -> Dict[str, Any]:
        return _unwrap(await self.request("POST", f"/admin/survey/{survey_id}/delist"))

    async def add_question_to_survey(self, survey_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        return _unwrap(await self.request("POST", f"/admin/survey/{survey_id}/question", json=data))

    async def add_conditional_question(self, survey_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        if data.get("parentQuestionId") is None:
            raise ValueError("A conditional question needs a parentQuestionId")
        return await self.add_question_to_survey(survey_id, data)

    async def get_survey_questions(self, survey_id: Any) -> List[Dict[str, Any]]:
        return _as_list(await self.request("GET", f"/admin/survey/{survey_id}/questions"))

    async def get_survey_statistics(self, survey_id: Any) -> Dict[str, Any]:
        return _unwrap(await self.request("GET", f"/admin/survey/{survey_id}/statistics"))

    # ------------------------------------------------------------------
    # Assignments and reviewers
    # ------------------------------------------------------------------

    async def assign_reviewers(self, survey_id: Any, assignments: Sequence[Dict[str, Any]]) -> Any:
        return await self.request(
            "POST", f"/admin/survey/{survey_id}/assign-reviewers", json={"assignments": list(assignments)}
        )

    async def assign_employee_to_survey(self, survey_id: Any, employee_id: Any) -> Any:
        return _unwrap(
            await self.request("POST", f"/admin/survey/{survey_id}/assignments", json={"employeeId": employee_id})
        )

    async def get_survey_assignments(self, survey_id: Any) -> List[Dict[str, Any]]:
        return _as_list(await self.request("GET", f"/admin/survey/{survey_id}/assignments"))

    async def create_reviewer(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return _unwrap(await self.request("POST", "/admin/reviewer", json=data))

    async def assign_reviewer_to_employee(self, reviewer_id: Any, employee_id: Any, survey_id: Any) -> Any:
        return _unwrap(
            await self.request(
                "POST",
                f"/admin/reviewer/{reviewer_id}/assign",
                json={"employeeId": employee_id, "surveyId": survey_id},
            )
        )

    # ------------------------------------------------------------------
    # Survey taking
    # ------------------------------------------------------------------

    async def generate_survey_token(self, survey_id: Any, employee_id: Any) -> str:
        body = await self.request(
            "POST", f"/admin/survey/{survey_id}/generate-token", json={"employeeId": employee_id}
        )
        token = _extract_token(body)
        if not token:
            raise ValueError(f"Survey token request succeeded but no token was found in the response: {body!r}")
        return token

    async def submit_survey(
        self,
        survey_id: Any,
        answers: Sequence[Dict[str, Any]],
        *,
        token: Optional[str] = None,
    ) -> Any:
        params = {"token": token} if token is not None else None
        return await self.request(
            "POST", f"/survey/{survey_id}/submit", params=params, json={"answers": list(answers)}
        )

    # ------------------------------------------------------------------
    # Exports and reports
    # ------------------------------------------------------------------

    async def create_export_job(
        self, survey_id: Any, format: Optional[Union[ExportFormat, str]] = None
    ) -> Dict[str, Any]:
        """
        Start an export job and return its initial state (normally pending).

        Completion is not awaited here; use utils.polling.wait_for_export_job
        from the test when the final state matters.
        """
        payload = {"format": ExportFormat(format).value} if format is not None else None
        job = _unwrap(await self.request("POST", f"/admin/survey/{survey_id}/export-job", json=payload))
        self._registry.record(ResourceKind.EXPORT_JOB, _resource_id(job, "id", "jobId"))
        return job

    async def get_export_job(self, job_id: Any) -> Dict[str, Any]:
        return _unwrap(await self.request("GET", f"/admin/export-job/{job_id}"))

    async def list_export_jobs(self, survey_id: Any) -> List[Dict[str, Any]]:
        return _as_list(await self.request("GET", f"/admin/survey/{survey_id}/export-jobs"))

    async def cancel_export_job(self, job_id: Any) -> Any:
        result = await self.request("DELETE", f"/admin/export-job/{job_id}")
        self._registry.discard(ResourceKind.EXPORT_JOB, job_id)
        return result

    async def export_survey(self, survey_id: Any, format: Union[ExportFormat, str]) -> Any:
        """JSON exports come back decoded; xlsx/pdf/pptx as raw bytes."""
        export_format = ExportFormat(format)
        return await self.request(
            "GET",
            f"/admin/survey/{survey_id}/export",
            params={"format": export_format.value},
            expect_binary=export_format.is_binary,
        )

    async def generate_report(self, survey_id: Any, format: Union[ExportFormat, str], **options) -> Any:
        report_format = ExportFormat(format)
        return await self.request(
            "POST",
            f"/admin/survey/{survey_id}/generate-report",
            json={"format": report_format.value, **options},
            expect_binary=report_format.is_binary,
        )

    # ------------------------------------------------------------------
    # Test data bookkeeping
    # ------------------------------------------------------------------

    def get_test_data(self) -> TestDataSnapshot:
        return self._registry.snapshot()

    def clear_test_data(self) -> None:
        """Forget every tracked id. Remote resources are left as they are."""
        self._registry.clear()
        self._employee_company.clear()

    async def teardown(self) -> List[Tuple[ResourceKind, Any, Exception]]:
        """
        Best-effort delete of everything this harness created, dependents
        first. A failed delete is logged and collected, never raised, so one
        stuck resource does not keep the others alive.

        Employees of a company that is itself tracked are left to the
        company delete, which cascades.

        Returns:
            (kind, id, error) for each delete that failed
        """
        failures: List[Tuple[ResourceKind, Any, Exception]] = []
        tracked_companies = set(self._registry.ids(ResourceKind.COMPANY))
        deleters = {
            ResourceKind.EXPORT_JOB: self.cancel_export_job,
            ResourceKind.SURVEY: self.delete_survey,
            ResourceKind.COMPANY: self.delete_company,
        }

        for kind in TEARDOWN_ORDER:
            for resource_id in reversed(self._registry.ids(kind)):
                try:
                    if kind is ResourceKind.EMPLOYEE:
                        company_id = self._employee_company.get(resource_id)
                        if company_id is None or company_id in tracked_companies:
                            self._registry.discard(kind, resource_id)
                            self._employee_company.pop(resource_id, None)
                            continue
                        await self.delete_employee(company_id, resource_id)
                    else:
                        await deleters[kind](resource_id)
                except (ApiError, httpx.TransportError) as e:
                    self._log.warning(f"Failed to delete {kind.value} {resource_id}: {e}")
                    failures.append((kind, resource_id, e))

        if failures:
            self._log.warning(f"Teardown left {len(failures)} resource(s) behind")
        return failures
