"""Fetch credentials — one explicit, validated value per fetch.

Exactly one authentication mode is in effect at a time.  Basic auth needs
both a username and a password; bearer auth needs a token; mixing the two is
rejected at construction rather than resolved by precedence at request time.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

from pydantic import BaseModel, ConfigDict, SecretStr, model_validator


class CredentialKind(str, Enum):
    NONE = "none"
    BASIC_AUTH = "basic"
    BEARER_TOKEN = "bearer"


class FetchCredentials(BaseModel):
    """Authentication applied to a single fetch request."""

    model_config = ConfigDict(frozen=True)

    kind: CredentialKind = CredentialKind.NONE
    username: str = ""
    password: SecretStr = SecretStr("")
    token: SecretStr = SecretStr("")

    @model_validator(mode="after")
    def _check_consistent(self) -> FetchCredentials:
        has_user = bool(self.username)
        has_password = bool(self.password.get_secret_value())
        has_token = bool(self.token.get_secret_value())

        if self.kind is CredentialKind.NONE:
            if has_user or has_password or has_token:
                raise ValueError("credential values given without a credential kind")
        elif self.kind is CredentialKind.BASIC_AUTH:
            if not (has_user and has_password):
                raise ValueError("basic auth requires both username and password")
            if has_token:
                raise ValueError("basic auth and bearer token are mutually exclusive")
        elif self.kind is CredentialKind.BEARER_TOKEN:
            if not has_token:
                raise ValueError("bearer auth requires a token")
            if has_user or has_password:
                raise ValueError("basic auth and bearer token are mutually exclusive")
        return self

    @classmethod
    def none(cls) -> FetchCredentials:
        return cls()

    @classmethod
    def basic(cls, username: str, password: str) -> FetchCredentials:
        return cls(
            kind=CredentialKind.BASIC_AUTH,
            username=username,
            password=SecretStr(password),
        )

    @classmethod
    def bearer(cls, token: str) -> FetchCredentials:
        return cls(kind=CredentialKind.BEARER_TOKEN, token=SecretStr(token))

    @classmethod
    def from_secret_data(cls, data: Mapping[str, str]) -> FetchCredentials:
        """Build credentials from Secret data keys ``username``/``password``/``token``.

        A Secret that carries both a token and any part of a username/password
        pair is ambiguous and raises ``ValueError``.
        """
        username = data.get("username", "")
        password = data.get("password", "")
        token = data.get("token", "")

        if token:
            if username or password:
                raise ValueError(
                    "secret carries both a token and username/password; "
                    "keep only one credential kind"
                )
            return cls.bearer(token)
        if username or password:
            return cls.basic(username, password)
        return cls.none()
