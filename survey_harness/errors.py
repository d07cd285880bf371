from typing import Any, Optional

import httpx


def _parse_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiError(httpx.HTTPStatusError):
    """
    Non-2xx answer from the backoffice.

    Keeps the status code and the body exactly as the remote system sent them
    so tests can assert on 400 vs 401 vs 404 and on error messages.
    """

    def __init__(self, response: httpx.Response):
        self.status_code = response.status_code
        self.body = _parse_body(response)
        super().__init__(
            f"{response.request.method} {response.request.url.path} -> {response.status_code}: {self.message or response.reason_phrase}",
            request=response.request,
            response=response,
        )

    @property
    def message(self) -> Optional[str]:
        if isinstance(self.body, dict):
            message = self.body.get("message") or self.body.get("error")
            if isinstance(message, list):
                return "; ".join(str(m) for m in message)
            return message
        if isinstance(self.body, str) and self.body:
            return self.body[:500]
        return None

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500
