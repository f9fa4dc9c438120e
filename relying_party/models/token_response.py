"""Typed view of the broker token endpoint's JSON response.

A 200 response is a TokenEndpointSuccess, anything else is a
TokenEndpointError.  Missing or null string fields become "" so callers
never probe an untyped dict.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError, field_validator


class _EmptyStringDefaults(BaseModel):
    @field_validator("*", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class TokenEndpointSuccess(_EmptyStringDefaults):
    id_token: str = ""


class TokenEndpointError(_EmptyStringDefaults):
    error: str = ""
    error_description: str = ""


TokenEndpointResponse = TokenEndpointSuccess | TokenEndpointError


class MalformedTokenResponse(ValueError):
    """The token endpoint answered with something that is not a JSON object
    of the expected shape."""


def parse_token_response(status_code: int, body: bytes) -> TokenEndpointResponse:
    model: type[TokenEndpointSuccess] | type[TokenEndpointError]
    model = TokenEndpointSuccess if status_code == 200 else TokenEndpointError
    try:
        return model.model_validate_json(body)
    except ValidationError as exc:
        raise MalformedTokenResponse(
            f"token endpoint returned an unparseable body (status {status_code})"
        ) from exc
