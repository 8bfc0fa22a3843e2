"""Classifies a connect outcome into a permission tier with next steps."""

import logging
from typing import Iterable

from integration_engine.providers.base import ProviderAdapter
from .models import (
    ConnectionSummary,
    CredentialTestResult,
    NextSteps,
    PermissionLevel,
    ProbeResult,
    ProviderCategory,
    SaveResult,
)

logger = logging.getLogger(__name__)

VIEW_SYNCED_DATA = "View synced data once the first sync completes"

ANALYTICS_OK_CAPABILITIES = (
    "Analytics Events - Successfully tested API access",
    "Real-time Events - Can read live user activity",
    "Historical Events - Can read past user behavior",
    "Conversion Events - Can read purchase and goal data",
)

ANALYTICS_DEGRADED_CAPABILITIES = (
    "Analytics Events - API accessible but authentication failed",
    "Analytics Setup - Endpoint ready, needs valid token",
)


def _merge(*groups: Iterable[str]) -> tuple[str, ...]:
    """Concatenate string groups, dropping blanks and repeats, keeping order."""
    merged: list[str] = []
    for group in groups:
        for item in group:
            if item and item not in merged:
                merged.append(item)
    return tuple(merged)


def _describe_permission(flag: str) -> str:
    return f"Missing permission: {flag.replace('_', ' ')}"


def _probe_capabilities(probe: ProbeResult | None) -> tuple[str, ...]:
    if probe is None or not probe.success:
        return ()
    if probe.errors:
        return ANALYTICS_DEGRADED_CAPABILITIES
    return ANALYTICS_OK_CAPABILITIES


def _probe_limitations(probe: ProbeResult | None) -> tuple[str, ...]:
    if probe is None:
        return ()
    if not probe.success:
        return (probe.error or "Analytics test failed",)
    return probe.errors


def _classify(
    adapter: ProviderAdapter,
    test_result: CredentialTestResult,
    missing: tuple[str, ...],
    has_warnings: bool,
) -> PermissionLevel:
    if not missing and not has_warnings:
        return PermissionLevel.FULL
    if (
        adapter.category is ProviderCategory.CUSTOMER_INTELLIGENCE
        and test_result.valid
        and len(missing) == 1
    ):
        return PermissionLevel.BUSINESS
    return PermissionLevel.LIMITED


def _next_steps(adapter: ProviderAdapter, limitations: tuple[str, ...]) -> NextSteps:
    immediate = (
        VIEW_SYNCED_DATA,
        f"Review {adapter.display_name} data in the dashboard",
    )
    if not limitations:
        return NextSteps(immediate=immediate)

    return NextSteps(
        immediate=immediate,
        recommended=(
            f"Grant the missing {adapter.display_name} permissions and reconnect",
            "Check that the connected account has admin access",
        ),
        advanced=(
            f"Create a {adapter.display_name} token with full API access",
            "Re-run the connection test after updating permissions",
        ),
    )


def build_summary(
    adapter: ProviderAdapter,
    test_result: CredentialTestResult,
    save_result: SaveResult,
    probe_result: ProbeResult | None = None,
) -> ConnectionSummary:
    """
    Build the summary shown after a successful connect.

    The tier is ``full`` when the test, the save and the probe reported no
    warnings or missing permissions; ``business`` when a customer-intelligence
    provider is authenticated but missing exactly one capability; ``limited``
    otherwise.

    Args:
        adapter: Adapter of the connected provider
        test_result: Result of the credential test
        save_result: Result of the save
        probe_result: Result of the capability probe, if one ran

    Returns:
        ConnectionSummary
    """
    flags = {**test_result.permission_flags, **save_result.permission_flags}
    missing = tuple(name for name, granted in flags.items() if not granted)

    warnings = _merge(test_result.warnings, save_result.warnings)
    probe_issues = _probe_limitations(probe_result)

    limitations = _merge(
        warnings,
        (_describe_permission(name) for name in missing),
        save_result.limitations,
        probe_issues,
    )
    capabilities = _merge(save_result.capabilities, _probe_capabilities(probe_result))

    level = _classify(
        adapter,
        test_result,
        missing,
        bool(warnings or probe_issues or save_result.limitations),
    )

    logger.info(
        f"{adapter.display_name} connected with {level.value} access "
        f"({len(capabilities)} capabilities, {len(limitations)} limitations)"
    )

    return ConnectionSummary(
        provider=adapter.provider_id,
        permission_level=level,
        capabilities=capabilities,
        limitations=limitations,
        next_steps=_next_steps(adapter, limitations),
        integration=save_result.integration,
        analytics_test=probe_result,
    )
