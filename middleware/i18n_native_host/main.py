"""i18n native host entrypoint.

The browser starts the host with the calling extension's origin as the
only argument (plus ``--parent-window=<n>`` on Windows); that invocation
serves one native-messaging request.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

# Windows consoles default to a legacy code page.
try:
    sys.stderr.reconfigure(encoding="utf-8")
except Exception:
    pass

from i18n_native_host.config import ConfigError, HostConfig, load_config
from i18n_native_host.manifest import (
    BROWSERS,
    ManifestError,
    build_manifest,
    default_host_path,
    install_manifest,
)
from i18n_native_host.models import UpdateResponse
from i18n_native_host.transport.host import NativeMessagingHost, process_update
from i18n_native_host.utils.log_setup import configure_logging, get_logger

logger = get_logger("main")

COMMANDS = ("serve", "apply", "install-manifest")
_BROWSER_ARG_PREFIXES = ("chrome-extension://", "--parent-window=")


def strip_browser_args(argv: List[str]) -> List[str]:
    return [arg for arg in argv if not arg.startswith(_BROWSER_ARG_PREFIXES)]


def _add_global_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Host config YAML (default: $I18N_HOST_CONFIG)")
    parser.add_argument("--log-file", help="Also write debug logs to this file")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        help="stderr log level",
    )


def build_serve_parser() -> argparse.ArgumentParser:
    """Global options only; used when the browser launches the host."""
    parser = argparse.ArgumentParser(prog="i18n-native-host", add_help=False)
    _add_global_options(parser)
    return parser


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="i18n-native-host",
        description="Native messaging host that writes edited translations back to JSON locale files",
    )
    _add_global_options(parser)
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Handle one framed request on stdin/stdout (default)")

    apply_parser = sub.add_parser("apply", help="Apply a plain JSON update request")
    apply_parser.add_argument("--input", help="Request JSON file (default: stdin)")
    apply_parser.add_argument("--root", help="Override the request's locales root")
    apply_parser.add_argument("--lang", help="Override the request's language")
    apply_parser.add_argument("--force", action="store_true", help="Skip old value verification")

    install_parser = sub.add_parser("install-manifest", help="Register the host with a browser")
    install_parser.add_argument("--extension-id", required=True, help="32-character extension id")
    install_parser.add_argument("--browser", choices=BROWSERS, default="chrome")
    install_parser.add_argument("--host-path", help="Executable the browser should launch")
    install_parser.add_argument("--dry-run", action="store_true", help="Print the manifest only")
    return parser


def _run_serve(config: HostConfig, startup_error: Optional[str] = None) -> int:
    host = NativeMessagingHost(config)
    host.install_signal_handlers()
    return host.run(startup_error=startup_error)


def _run_apply(args: argparse.Namespace, config: HostConfig) -> int:
    try:
        sys.stdout.reconfigure(encoding="utf-8")
    except Exception:
        pass
    try:
        if args.input and args.input != "-":
            raw = Path(args.input).read_text(encoding="utf-8-sig")
        else:
            raw = sys.stdin.read()
        message = json.loads(raw)
    except (OSError, json.JSONDecodeError) as exc:
        response = UpdateResponse.failure(f"Failed to read request: {exc}")
    else:
        if isinstance(message, dict):
            if args.root:
                message["root"] = args.root
            if args.lang:
                message["lang"] = args.lang
            if args.force:
                message["force"] = True
        response = process_update(message, config)
    print(json.dumps(response.to_wire(), ensure_ascii=False, indent=2))
    return 0 if response.success else 1


def _run_install(args: argparse.Namespace) -> int:
    try:
        if args.dry_run:
            manifest = build_manifest(args.extension_id, args.host_path or default_host_path())
            print(json.dumps(manifest, indent=2))
            return 0
        target = install_manifest(
            args.extension_id, browser=args.browser, host_path=args.host_path
        )
    except (ManifestError, OSError) as exc:
        print(f"[Error] {exc}", file=sys.stderr)
        return 1
    print(f"Native host manifest written: {target}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    raw_args = strip_browser_args(list(sys.argv[1:] if argv is None else argv))
    unknown: List[str] = []
    if any(arg in COMMANDS or arg in ("-h", "--help") for arg in raw_args):
        args = build_parser().parse_args(raw_args)
    else:
        # Browsers may append launch arguments of their own; a frame must
        # still be answered, so they are ignored instead of rejected.
        args, unknown = build_serve_parser().parse_known_args(raw_args)
        args.command = "serve"
    command = args.command or "serve"

    # Log to stderr before the config is known so config problems are visible.
    configure_logging(args.log_level or "info", args.log_file)
    if unknown:
        logger.warning("Ignoring unrecognized launch arguments: %s", " ".join(unknown))
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"[Error] {exc}", file=sys.stderr)
        if command == "serve":
            return _run_serve(HostConfig(), startup_error=f"Configuration error: {exc}")
        return 1
    configure_logging(args.log_level or config.log_level, args.log_file or config.log_file)

    if command == "apply":
        return _run_apply(args, config)
    if command == "install-manifest":
        return _run_install(args)
    return _run_serve(config)


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    raise SystemExit(main())
