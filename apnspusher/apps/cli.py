from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
import sys
import time

from apnspusher.core.config import get_settings
from apnspusher.core.errors import ApnsPusherError, CredentialError, PayloadError, ValidationError
from apnspusher.domain.models import PRIORITIES, PUSH_TYPES, ConnectionMode, DispatchOutcome
from apnspusher.persistence.settings_store import InMemorySettingsStore, SQLiteSettingsStore
from apnspusher.services.credentials.identity_store import DirectoryIdentityStore
from apnspusher.services.push.dispatcher import INTEGRATION_NAME
from apnspusher.services.push.session import PushSession
from apnspusher.services.telemetry import ExternalCallSummary, external_call_summary


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send a push notification to one or more devices through APNs."
    )
    parser.add_argument("tokens", nargs="*", help="Device tokens (defaults to the saved list)")
    parser.add_argument("--mode", choices=[mode.value for mode in ConnectionMode], help="Connection mode")
    parser.add_argument("--key-file", help="Path to the .p8 signing key (token mode)")
    parser.add_argument("--key-id", help="10-character signing key ID")
    parser.add_argument("--team-id", help="10-character team ID")
    parser.add_argument("--certificate", help="Path to the APNs client certificate (certificate mode)")
    parser.add_argument("--identity-key-dir", help="Directory holding the certificate's private key")
    parser.add_argument("--topic", help="apns-topic, usually the bundle ID")
    parser.add_argument("--priority", type=int, choices=PRIORITIES, help="apns-priority")
    parser.add_argument("--push-type", choices=PUSH_TYPES, help="apns-push-type")
    parser.add_argument("--collapse-id", help="apns-collapse-id")
    env = parser.add_mutually_exclusive_group()
    env.add_argument("--production", action="store_true", help="Use the production environment")
    env.add_argument("--sandbox", action="store_true", help="Use the sandbox environment")
    payload = parser.add_mutually_exclusive_group()
    payload.add_argument("--payload", help="JSON payload text")
    payload.add_argument("--payload-file", help="File containing the JSON payload")
    parser.add_argument("--store", help="Settings database (defaults to SETTINGS_STORE_PATH)")
    parser.add_argument("--no-persist", action="store_true", help="Do not load or save settings")
    return parser


def _exit_code(exc: ApnsPusherError | None, outcomes: list[DispatchOutcome]) -> int:
    if isinstance(exc, ValidationError):
        return 2
    if isinstance(exc, CredentialError):
        return 3
    if isinstance(exc, PayloadError):
        return 4
    if exc is not None:
        return 1
    if any(not outcome.success for outcome in outcomes):
        return 5
    return 0


def _format_summary(summary: ExternalCallSummary) -> str:
    latency = "-" if summary.max_ms is None else f"p95={summary.p95_ms:.1f}ms max={summary.max_ms:.1f}ms"
    return f"sent={summary.calls} delivered={summary.succeeded} failed={summary.failed} latency {latency}"


def _apply_args(session: PushSession, args: argparse.Namespace) -> None:
    if args.mode:
        session.connection_mode = ConnectionMode(args.mode)
    if args.key_file is not None:
        session.key_file = args.key_file
    if args.key_id is not None:
        session.key_id = args.key_id
    if args.team_id is not None:
        session.team_id = args.team_id
    if args.certificate is not None:
        session.certificate_file = args.certificate
    if args.topic is not None:
        session.topic = args.topic
    if args.priority is not None:
        session.priority = args.priority
    if args.push_type is not None:
        session.push_type = args.push_type
    if args.collapse_id is not None:
        session.collapse_id = args.collapse_id
    if args.production or args.sandbox:
        session.use_production(args.production)
    if args.payload is not None:
        session.payload = args.payload
    if args.payload_file is not None:
        session.payload = Path(args.payload_file).expanduser().read_text(encoding="utf-8")
    if args.tokens:
        session.device_tokens = []
        for token in args.tokens:
            session.add_device_token(token)


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def run(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    _configure_logging(settings.log_level)

    store = InMemorySettingsStore() if args.no_persist else SQLiteSettingsStore(args.store or settings.settings_store_path)
    identity_dir = args.identity_key_dir or settings.identity_key_dir
    identity_store = (
        DirectoryIdentityStore(identity_dir, password=settings.identity_key_password) if identity_dir else None
    )
    session = PushSession(store=store, identity_store=identity_store, settings=settings)
    session.load()
    try:
        _apply_args(session, args)
    except OSError as exc:
        print(f"Unable to read payload file: {exc}", file=sys.stderr)
        return 4

    started = time.time()
    outcomes = asyncio.run(session.send())
    for outcome in outcomes:
        if outcome.success:
            print(f"{outcome.token} delivered apns_id={outcome.apns_id or '-'}")
        else:
            print(f"{outcome.token} failed reason={outcome.message}")
    if outcomes:
        print(_format_summary(external_call_summary(INTEGRATION_NAME, since=started)))
    if session.last_error is not None:
        print(session.status.text, file=sys.stderr)
    return _exit_code(session.last_error, outcomes)


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
