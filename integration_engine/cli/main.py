"""Main CLI entry point for the Integration Engine."""

import argparse
import asyncio
import logging
import sys
import time

from integration_engine.core import (
    CredentialSet,
    IntegrationEngineError,
    SessionContext,
    clear_session,
    load_session,
    load_settings,
    save_session,
)
from integration_engine.orchestrator import IntegrationOrchestrator
from integration_engine.providers import get_adapter

logger = logging.getLogger(__name__)

WATCH_REFRESH_SECONDS = 5.0


def setup_logging(verbose: bool = False):
    """Configure logging for the CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )
    # Suppress httpx INFO logs for cleaner output
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _require_session() -> SessionContext:
    try:
        session = load_session()
    except IntegrationEngineError as e:
        _fail(str(e))
    if session is None or not session.is_authenticated:
        _fail("Not logged in. Run 'integration-engine login --token YOUR_TOKEN' first.")
    return session


def _make_engine(session: SessionContext) -> IntegrationOrchestrator:
    return IntegrationOrchestrator(session, settings=load_settings())


def _run(coro) -> None:
    """Run a command coroutine, reporting engine errors with their step."""
    try:
        asyncio.run(coro)
    except IntegrationEngineError as e:
        print(f"Error: {e.user_message()}", file=sys.stderr)
        if e.retryable:
            print("This error is temporary; you can retry the command.", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        _fail(str(e))


def build_credentials(args) -> CredentialSet:
    """
    Map connect flags onto the provider's credential fields.

    ``--token`` fills the provider's secret field and ``--account-id`` its
    account field; the remaining flags map to fields of the same name.
    """
    adapter = get_adapter(args.provider)
    values = {
        adapter.secret_field: args.token,
        "property_id": args.property_id,
        "location_id": args.location_id,
        "pixel_id": args.pixel_id,
    }
    if args.account_id and adapter.account_field:
        values[adapter.account_field] = args.account_id
    return CredentialSet({k: v for k, v in values.items() if k in adapter.accepted_fields})


def cmd_login(args):
    """Handle the login command."""
    try:
        session = SessionContext(token=args.token, user_id=args.user_id)
        if not session.is_authenticated:
            _fail("Token must not be empty.")
        path = save_session(session)
        print("Logged in.")
        print(f"Session saved to: {path}")
    except IntegrationEngineError as e:
        _fail(str(e))


def cmd_logout(args):
    """Handle the logout command."""
    try:
        clear_session()
        print("Logged out.")
    except IntegrationEngineError as e:
        _fail(str(e))


async def _providers(session: SessionContext, category: str | None) -> None:
    async with _make_engine(session) as engine:
        providers = await engine.list_providers(category)

    if not providers:
        print(f"No providers in category '{category}'.")
        return

    print(f"Connectable providers ({len(providers)}):")
    print()
    for provider in providers:
        print(f"  ID:         {provider.id}")
        print(f"  Name:       {provider.name}")
        print(f"  Category:   {provider.category.value}")
        print(f"  Complexity: {provider.setup_complexity.value}")
        if provider.capabilities:
            print(f"  Capabilities: {', '.join(sorted(provider.capabilities))}")
        print()


def cmd_providers(args):
    """Handle the providers command."""
    _run(_providers(_require_session(), args.category))


async def _integrations(session: SessionContext) -> None:
    engine = _make_engine(session)
    try:
        integrations = await engine.refresh_integrations()
    finally:
        await engine.close()

    if not integrations:
        print("No integrations connected.")
        return

    print(f"Integrations ({len(integrations)}):")
    print()
    for integration in integrations:
        last_sync = integration.last_sync.isoformat() if integration.last_sync else "never"
        print(f"  ID:          {integration.id}")
        print(f"  Name:        {integration.name}")
        print(f"  Provider:    {integration.provider}")
        print(f"  Status:      {integration.status.value}")
        print(f"  Last sync:   {last_sync}")
        print(f"  Data points: {integration.data_points_synced}")
        print()


def cmd_integrations(args):
    """Handle the integrations command."""
    _run(_integrations(_require_session()))


def _print_summary(summary) -> None:
    print(f"✓ Connected with {summary.permission_level.value} access")
    if summary.integration is not None:
        print(f"  Integration ID: {summary.integration.id}")
    print()

    if summary.capabilities:
        print("Capabilities:")
        for line in summary.capabilities:
            print(f"  - {line}")
        print()

    if summary.limitations:
        print("Limitations:")
        for line in summary.limitations:
            print(f"  - {line}")
        print()

    if summary.analytics_test is not None:
        probe = summary.analytics_test
        if probe.success:
            print(
                f"Analytics test: {probe.real_time_events} real-time, "
                f"{probe.historical_events} historical, {probe.conversion_events} conversion events"
            )
        else:
            print(f"Analytics test: {probe.error}")
        print()

    print("Next steps:")
    for group, steps in summary.next_steps.to_dict().items():
        for step in steps:
            print(f"  [{group}] {step}")


async def _connect(session: SessionContext, provider_id: str, credentials, name: str | None) -> None:
    engine = _make_engine(session)
    try:
        print(f"Testing credentials for '{provider_id}'...")
        summary = await engine.connect(provider_id, credentials, name)
    finally:
        await engine.close()
    print()
    _print_summary(summary)


def cmd_connect(args):
    """Handle the connect command."""
    session = _require_session()
    try:
        credentials = build_credentials(args)
    except IntegrationEngineError as e:
        _fail(str(e))
    _run(_connect(session, args.provider, credentials, args.name))


async def _disconnect(session: SessionContext, integration_id: str) -> None:
    engine = _make_engine(session)
    try:
        await engine.disconnect(integration_id)
    finally:
        await engine.close()
    print(f"✓ Disconnected integration {integration_id}")


def cmd_disconnect(args):
    """Handle the disconnect command."""
    _run(_disconnect(_require_session(), args.id))


def _print_data_points(view) -> None:
    marker = " (estimate)" if view.total.is_estimate else ""
    print(f"Total data points: {view.total.value}{marker}")
    for integration_id, count in view.by_integration.items():
        print(f"  {integration_id}: {count.value} [{count.source.value}]")


async def _stats(session: SessionContext) -> None:
    engine = _make_engine(session)
    try:
        await engine.refresh_integrations()
        await engine.refresh_data_points()
        view = engine.current_data_points()
    finally:
        await engine.close()
    _print_data_points(view)


def cmd_stats(args):
    """Handle the stats command."""
    _run(_stats(_require_session()))


async def _watch(session: SessionContext, duration: float) -> None:
    deadline = time.monotonic() + duration

    async with _make_engine(session) as engine:
        while True:
            integrations = engine.current_integrations()
            print(f"[{time.strftime('%H:%M:%S')}] {len(integrations)} integrations")
            for integration in integrations:
                progress = engine.current_progress(integration.id)
                state = engine.poller.state(integration.id)
                if progress is None:
                    print(f"  {integration.name}: {integration.status.value}")
                    continue
                stage = f" ({progress.current_stage})" if progress.current_stage else ""
                print(
                    f"  {integration.name}: {progress.overall_status.value} "
                    f"{progress.overall_progress:.0f}%{stage}"
                    + (f" [{state.value}]" if state else "")
                )
            print()

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(WATCH_REFRESH_SECONDS, remaining))

        _print_data_points(engine.current_data_points())


def cmd_watch(args):
    """Handle the watch command."""
    try:
        _run(_watch(_require_session(), args.duration))
    except KeyboardInterrupt:
        print("\nStopped watching.")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="integration-engine",
        description="Integration Engine CLI",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Login command
    login_parser = subparsers.add_parser("login", help="Store the session token")
    login_parser.add_argument("--token", required=True, help="Backend bearer token")
    login_parser.add_argument("--user-id", help="User ID the token belongs to")
    login_parser.set_defaults(func=cmd_login)

    # Logout command
    logout_parser = subparsers.add_parser("logout", help="Remove the stored session")
    logout_parser.set_defaults(func=cmd_logout)

    # Providers command
    providers_parser = subparsers.add_parser("providers", help="List connectable providers")
    providers_parser.add_argument(
        "--category",
        choices=["ad_intelligence", "customer_intelligence", "behavior_intelligence"],
        help="Only list providers in this category",
    )
    providers_parser.set_defaults(func=cmd_providers)

    # Integrations command
    integrations_parser = subparsers.add_parser("integrations", help="List connected integrations")
    integrations_parser.set_defaults(func=cmd_integrations)

    # Connect command
    connect_parser = subparsers.add_parser("connect", help="Connect a provider account")
    connect_parser.add_argument("--provider", required=True, help="Provider ID (e.g., 'facebook_ads')")
    connect_parser.add_argument("--token", required=True, help="Provider access token or API key")
    connect_parser.add_argument("--account-id", help="Ad account, customer or portal ID")
    connect_parser.add_argument("--property-id", help="Google Analytics property ID")
    connect_parser.add_argument("--location-id", help="GoHighLevel location ID")
    connect_parser.add_argument("--pixel-id", help="Facebook pixel ID")
    connect_parser.add_argument("--name", help="Integration name")
    connect_parser.set_defaults(func=cmd_connect)

    # Disconnect command
    disconnect_parser = subparsers.add_parser("disconnect", help="Disconnect an integration")
    disconnect_parser.add_argument("--id", required=True, help="Integration ID")
    disconnect_parser.set_defaults(func=cmd_disconnect)

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Show data point totals")
    stats_parser.set_defaults(func=cmd_stats)

    # Watch command
    watch_parser = subparsers.add_parser("watch", help="Watch sync progress")
    watch_parser.add_argument(
        "--duration",
        type=float,
        default=120.0,
        help="Seconds to watch before exiting (default: 120)",
    )
    watch_parser.set_defaults(func=cmd_watch)

    return parser


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
