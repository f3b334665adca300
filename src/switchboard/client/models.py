"""Request and result models for outbound API calls."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from switchboard.retry.policies import RetryPolicy

# Parameter values the platform accepts in a form-encoded body
ParameterValue = str | int | float | bool | None


class CallOptions(BaseModel):
    """Per-call overrides.

    Attributes:
        timeout: Seconds before a single attempt times out.
        retry_policy: Retry policy to use instead of the client's default.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout: float | None = Field(default=None, gt=0.0)
    retry_policy: RetryPolicy | None = None


class CallRequest(BaseModel):
    """One logical API call. Immutable once submitted.

    Attributes:
        method: API method name, appended to the base URL (e.g. "chat.postMessage").
        parameters: Method arguments.
        options: Optional per-call overrides.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    method: str = Field(min_length=1)
    parameters: dict[str, ParameterValue] = Field(default_factory=dict)
    options: CallOptions | None = None

    def form_data(self) -> dict[str, str]:
        """Serialize parameters for a form-encoded body.

        None values are dropped and booleans are sent as "true"/"false".
        """
        data: dict[str, str] = {}
        for key, value in self.parameters.items():
            if value is None:
                continue
            if isinstance(value, bool):
                data[key] = "true" if value else "false"
            else:
                data[key] = str(value)
        return data


class CallResult(BaseModel):
    """Outcome of an API call.

    Exactly one variant holds: ok=True with a data payload, or ok=False
    with an error code.

    Attributes:
        ok: Whether the platform reported success.
        data: The full response payload.
        error: Platform error code when ok is False.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ok: bool
    data: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None

    @model_validator(mode="after")
    def _check_variant(self) -> CallResult:
        if self.ok and self.error is not None:
            raise ValueError("A successful CallResult cannot carry an error")
        if not self.ok and not self.error:
            raise ValueError("A failed CallResult must carry an error code")
        return self

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> CallResult:
        """Classify a parsed response body.

        A payload without a truthy "ok" field is a failure carrying the
        platform-reported "error" code (or "unknown_error").
        """
        if payload.get("ok") is True:
            return cls(ok=True, data=payload)
        error = payload.get("error")
        return cls(ok=False, data=payload, error=str(error) if error else "unknown_error")

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


class TransportResponse(BaseModel):
    """Raw HTTP response handed back by a transport.

    Attributes:
        status_code: HTTP status.
        headers: Response headers, lower-cased keys.
        body: Undecoded response body.
    """

    model_config = ConfigDict(frozen=True)

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    def parse_json(self) -> Any:
        return json.loads(self.body)
