import logging

import httpx
from pydantic import BaseModel, SecretStr, field_validator

from actual_node.errors import CredentialError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15

# ---------- DESCRIPTOR ----------

CREDENTIAL_TYPE = {
    "name": "actualBudgetApi",
    "displayName": "Actual Budget API",
    "documentationUrl": "https://actualbudget.org/docs/api/",
    "properties": [
        {
            "displayName": "URL",
            "name": "url",
            "type": "string",
            "default": "",
            "required": True,
        },
        {
            "displayName": "Password",
            "name": "password",
            "type": "string",
            "typeOptions": {"password": True},
            "default": "",
            "required": True,
        },
    ],
    "test": {
        "request": {
            "baseURL": "={{$credentials?.url}}",
            "url": "=/account/login",
            "method": "POST",
            "body": {
                "loginMethod": "password",
                "password": "={{$credentials?.password}}",
            },
        }
    },
}


class Credentials(BaseModel):
    """Connection details for one Actual server."""

    url: str
    password: SecretStr

    @field_validator("url")
    @classmethod
    def _strip_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("url must not be empty")
        return value


# ---------- TEST REQUEST ----------

def build_test_request(credentials: Credentials) -> tuple[str, str, dict]:
    return (
        "POST",
        f"{credentials.url}/account/login",
        {
            "loginMethod": "password",
            "password": credentials.password.get_secret_value(),
        },
    )


async def verify_credentials(
    credentials: Credentials,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
):
    """Log in against the server the way the host's credential test does.

    Only the HTTP status is looked at; the body is returned untouched.

    Raises:
        CredentialError: on a non-2xx response or a transport failure
    """
    method, url, body = build_test_request(credentials)
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            r = await client.request(method, url, json=body)
    except httpx.HTTPError as e:
        logger.warning(f"Credential test against {credentials.url} failed: {e}")
        raise CredentialError(f"Could not reach {url}: {e}") from e

    if not r.is_success:
        logger.warning(f"Credential test against {credentials.url} returned {r.status_code}")
        raise CredentialError(
            f"{r.status_code} {r.reason_phrase}: {r.text}",
            status_code=r.status_code,
        )
    if r.headers.get("content-type", "").startswith("application/json"):
        return r.json()
    return {}
