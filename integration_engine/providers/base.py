"""Provider adapter describing how to talk to one provider's endpoints."""

import logging
from dataclasses import dataclass
from typing import Any

from integration_engine.core.errors import ValidationError
from integration_engine.core.models import CredentialSet, ProviderCategory

logger = logging.getLogger(__name__)

TEST_CREDENTIALS = "test-credentials"
SAVE = "save"
ANALYTICS_EVENTS = "analytics-events"

ENDPOINT_KINDS = (TEST_CREDENTIALS, SAVE, ANALYTICS_EVENTS)

PLACEHOLDER_VALUES = frozenset({"test", "test_token", "your_token_here"})

# Keys any provider may use to report partial access on a valid result
COMMON_WARNING_PATHS = ("permissionWarning", "permission_warning")

PROBE_DATE_RANGE = "7daysAgo"


def to_wire_key(field_name: str) -> str:
    """
    Convert a snake_case credential field to the backend's camelCase key.

    Args:
        field_name: Field name (e.g., "ad_account_id")

    Returns:
        Wire key (e.g., "adAccountId")
    """
    head, *rest = field_name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def lookup_path(data: dict[str, Any], path: str) -> Any:
    """
    Resolve a dotted path (e.g., "userInfo.has_ad_access") in a response body.

    Returns:
        The value, or None if any segment is missing
    """
    current: Any = data
    for segment in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(segment)
    return current


@dataclass(frozen=True)
class ProviderAdapter:
    """
    Provider-specific data for the connect flow.

    Providers differ only in which fields they take, how long a real secret
    is, which endpoints they use and where their responses report partial
    access, so each provider is one instance of this record rather than a
    subclass.
    """
    provider_id: str
    display_name: str
    endpoint_slug: str
    category: ProviderCategory
    secret_field: str = "access_token"
    account_field: str | None = None
    optional_fields: tuple[str, ...] = ()
    probe_field: str | None = None
    min_secret_length: int = 50
    placeholder_values: frozenset[str] = PLACEHOLDER_VALUES
    permission_paths: tuple[tuple[str, str], ...] = ()
    warning_paths: tuple[str, ...] = ()
    default_name_suffix: str = "Main Account"
    secret_label: str = "access token"

    @property
    def accepted_fields(self) -> tuple[str, ...]:
        """All credential fields this provider sends, secret first."""
        names = [self.secret_field]
        for name in (self.account_field, *self.optional_fields, self.probe_field):
            if name and name not in names:
                names.append(name)
        return tuple(names)

    @property
    def supports_probe(self) -> bool:
        return self.probe_field is not None

    def endpoint(self, kind: str) -> str:
        """
        Build the backend path for one of this provider's endpoints.

        Args:
            kind: One of ENDPOINT_KINDS

        Returns:
            Path relative to the API base URL

        Raises:
            ValueError: If kind is unknown or the provider has no probe
        """
        if kind not in ENDPOINT_KINDS:
            raise ValueError(f"Unknown endpoint kind '{kind}'")
        if kind == ANALYTICS_EVENTS and not self.supports_probe:
            raise ValueError(f"Provider '{self.provider_id}' has no capability probe")
        return f"/integrations/{self.endpoint_slug}/{kind}"

    def default_integration_name(self) -> str:
        return f"{self.display_name} - {self.default_name_suffix}"

    def account_identifier(self, credentials: CredentialSet) -> str | None:
        """Return the account-identifying field the backend keys saves on."""
        if self.account_field is None:
            return None
        return credentials.get(self.account_field)

    def validate(self, credentials: CredentialSet) -> str:
        """
        Run client-side checks on the secret before any request is made.

        Args:
            credentials: User-entered credentials

        Returns:
            The trimmed secret

        Raises:
            ValidationError: If the secret is empty, too short or a placeholder
        """
        secret = credentials.get(self.secret_field)
        label = f"{self.display_name} {self.secret_label}"

        if not secret:
            raise ValidationError(f"{label} is required.")

        if len(secret) < self.min_secret_length:
            raise ValidationError(
                f"{label} is too short to be real "
                f"({len(secret)} characters, expected at least {self.min_secret_length}). "
                f"Please check your token."
            )

        if secret.lower() in self.placeholder_values:
            raise ValidationError(
                f"Please provide a real {label}, not a test or placeholder value."
            )

        return secret

    def _credential_payload(self, credentials: CredentialSet) -> dict[str, Any]:
        values = credentials.fields()
        return {
            to_wire_key(name): values[name]
            for name in self.accepted_fields
            if name in values
        }

    def build_test_payload(self, credentials: CredentialSet, name: str) -> dict[str, Any]:
        """Body for the test-credentials endpoint."""
        payload = self._credential_payload(credentials)
        payload["integrationName"] = name
        return payload

    def build_save_payload(self, credentials: CredentialSet, name: str) -> dict[str, Any]:
        """Body for the save endpoint; same shape as the test body."""
        return self.build_test_payload(credentials, name)

    def wants_probe(self, credentials: CredentialSet) -> bool:
        """True when the probe's optional field was supplied."""
        return self.supports_probe and self.probe_field in credentials

    def build_probe_payload(self, credentials: CredentialSet, name: str) -> dict[str, Any]:
        """Body for the analytics-events probe: the save body plus a date range."""
        payload = self.build_save_payload(credentials, name)
        payload["date_range"] = PROBE_DATE_RANGE
        return payload

    def extract_permission_flags(self, body: dict[str, Any]) -> dict[str, bool]:
        """
        Read permission flags from a test or save response.

        An explicit ``permission_flags`` object is taken as-is; provider
        specific paths listed in permission_paths are layered on top.
        """
        flags: dict[str, bool] = {}

        explicit = body.get("permission_flags")
        if isinstance(explicit, dict):
            for name, value in explicit.items():
                if isinstance(value, bool):
                    flags[name] = value

        for name, path in self.permission_paths:
            value = lookup_path(body, path)
            if isinstance(value, bool):
                flags[name] = value
            elif value is not None:
                logger.debug(f"Ignoring non-boolean permission flag {path}={value!r}")

        return flags

    def extract_warnings(self, body: dict[str, Any]) -> tuple[str, ...]:
        """Collect partial-access warnings from a valid response."""
        warnings: list[str] = []
        for path in (*self.warning_paths, *COMMON_WARNING_PATHS):
            value = lookup_path(body, path)
            if isinstance(value, str) and value.strip() and value.strip() not in warnings:
                warnings.append(value.strip())
        return tuple(warnings)
