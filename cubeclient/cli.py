"""
cubeclient: CLI for the signed game-server API client
"""

import argparse
import json
import sys

from cubeclient import config
from cubeclient.commands import (
    cmd_base_url,
    cmd_changelog,
    cmd_login,
    cmd_logout,
    cmd_notify,
    cmd_refresh,
    cmd_sign,
    cmd_version,
    cmd_whoami,
)
from cubeclient.exceptions import CliError

HELP_TEXT = """\
Usage: cubeclient <command> [args...]

Global flags:
  --format table          Output as readable text instead of JSON (default: json)
  --verbose, -v           Enable HTTP and session logging on stderr
  --version               Show version number

Commands:
  login                   - Authenticate this device and store the session
    --device-id <id>        (required) Stable device identifier
    --display-name <name>   Player display name
    --game-center-id <id>   Game Center local player id
    --time-zone <tz>        IANA time zone (default: UTC)
  whoami                  - Show the stored session (token masked)
  refresh                 - Re-fetch the current player and replace the session
  logout                  - Clear the stored session
  base-url [url]          - Show the server endpoint, or switch it (debug builds
                            only; always logs out)
  notify <type> on|off    - Update a remote notification setting, then refresh
    --debounce <seconds>    Quiescence window before sending (default: 0.5)
                            Types: dailyChallengeEndsSoon, dailyChallengeReport
  changelog --build <n>   - Fetch the changelog for a build number
  sign <METHOD> <PATH>    - Print the canonical form and signature of a request
    --query key=value       Query parameter (repeatable)
    --body <json>           JSON body
  version                 - Show version number
"""


# ---------------------------------------------------------------------------
# Global flag extraction (before argparse, so --format works after subcommand)
# ---------------------------------------------------------------------------


def _extract_global_flags(argv):
    """Extract global flags from argv regardless of position.

    Returns (format_str, verbose, remaining_argv).
    Handles --version directly.
    """
    fmt = "json"
    verbose = False
    remaining = []
    i = 0
    while i < len(argv):
        if argv[i] == "--version":
            print(f"cubeclient {config.VERSION}")
            sys.exit(0)
        elif argv[i] in ("--verbose", "-v"):
            verbose = True
            i += 1
            continue
        elif argv[i] == "--format" and i + 1 < len(argv):
            fmt = argv[i + 1]
            if fmt not in ("json", "table"):
                raise CliError(f"[ERROR] Invalid format '{fmt}'. Use: json, table")
            i += 2
            continue
        else:
            remaining.append(argv[i])
        i += 1
    return fmt, verbose, remaining


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


class _SubcommandParser(argparse.ArgumentParser):
    """Subparser that raises CliError instead of printing full help text."""

    def error(self, message):
        raise CliError(f"[ERROR] {message}")


def _positive_int(value):
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be a positive integer") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return parsed


def _non_negative_float(value):
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be a non-negative number") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("must be a non-negative number")
    return parsed


def build_parser():
    parser = _SubcommandParser(
        prog="cubeclient",
        description="CLI for the signed game-server API client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument("--help", "-h", action="store_true", dest="show_help")
    sub = parser.add_subparsers(dest="command", parser_class=_SubcommandParser)

    # --- login ---
    p = sub.add_parser("login")
    p.add_argument("--device-id", required=True, dest="device_id")
    p.add_argument("--display-name", dest="display_name")
    p.add_argument("--game-center-id", dest="game_center_id")
    p.add_argument("--time-zone", dest="time_zone", default="UTC")
    p.set_defaults(func=cmd_login)

    # --- whoami / refresh / logout ---
    sub.add_parser("whoami").set_defaults(func=cmd_whoami)
    sub.add_parser("refresh").set_defaults(func=cmd_refresh)
    sub.add_parser("logout").set_defaults(func=cmd_logout)

    # --- base-url ---
    p = sub.add_parser("base-url")
    p.add_argument("url", nargs="?")
    p.set_defaults(func=cmd_base_url)

    # --- notify ---
    p = sub.add_parser("notify")
    p.add_argument("notification_type")
    p.add_argument("value")
    p.add_argument(
        "--debounce", type=_non_negative_float, default=config.SETTINGS_DEBOUNCE_SECONDS
    )
    p.set_defaults(func=cmd_notify)

    # --- changelog ---
    p = sub.add_parser("changelog")
    p.add_argument("--build", type=_positive_int, required=True)
    p.set_defaults(func=cmd_changelog)

    # --- sign ---
    p = sub.add_parser("sign")
    p.add_argument("method", type=str.upper)
    p.add_argument("path")
    p.add_argument("--query", action="append")
    p.add_argument("--body")
    p.set_defaults(func=cmd_sign)

    # --- version (bare word) ---
    sub.add_parser("version").set_defaults(func=cmd_version)

    return parser


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------


def _error_type_from_message(message):
    if message.startswith("[AUTH_REQUIRED]"):
        return "authentication_required"
    if message.startswith("[SETUP_NEEDED]"):
        return "setup_needed"
    if message.startswith("[ERROR]"):
        return "error"
    return "cli_error"


def _emit_cli_error(err, fmt):
    msg = str(err)
    if fmt == "json":
        payload = {
            "ok": False,
            "schema_version": config.CONTRACT_SCHEMA_VERSION,
            "error": {
                "type": getattr(err, "kind", None) or _error_type_from_message(msg),
                "message": msg,
                "exit_code": getattr(err, "exit_code", 1),
            },
        }
        status = getattr(err, "status", None)
        if status is not None:
            payload["error"]["status"] = status
        print(json.dumps(payload, ensure_ascii=False), file=sys.stderr)
        return
    print(msg, file=sys.stderr)


def main(argv=None):
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")

    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(HELP_TEXT)
        sys.exit(0)

    fmt = "json"
    try:
        fmt, verbose, remaining_argv = _extract_global_flags(argv)
        if verbose:
            config.HTTP_LOG_ENABLED = True

        if not remaining_argv:
            print(HELP_TEXT)
            sys.exit(0)

        parser = build_parser()
        ns = parser.parse_args(remaining_argv)
        ns.format = fmt

        if ns.show_help or not ns.command:
            print(HELP_TEXT)
            sys.exit(0)

        handler = getattr(ns, "func", None)
        if handler is None:
            raise CliError(f"[ERROR] Unknown command: {ns.command}")
        handler(ns)

    except CliError as e:
        _emit_cli_error(e, fmt)
        sys.exit(e.exit_code)


if __name__ == "__main__":
    main()
