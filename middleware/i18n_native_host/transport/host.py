"""Native messaging host: one framed request in, one framed response out."""

from __future__ import annotations

import os
import signal
import sys
from pathlib import Path
from typing import IO, Any, Callable, Dict, Optional

from i18n_native_host.config import HostConfig
from i18n_native_host.engine.updater import apply, lookup
from i18n_native_host.models import (
    RequestValidationError,
    TemplateResponse,
    UpdateResponse,
    parse_template_request,
    parse_update_request,
)
from i18n_native_host.transport.framing import (
    MessageParseError,
    ProtocolError,
    decode_payload,
    read_frame,
    write_frame,
)
from i18n_native_host.utils.log_setup import get_logger

logger = get_logger("host")

ACTION_UPDATE = "update"
ACTION_GET_TEMPLATE = "get_template"


def _warn_relative_root(root: str) -> None:
    if not Path(root).expanduser().is_absolute():
        logger.warning("Root %r is relative; resolving against %s", root, os.getcwd())


def process_update(message: Dict[str, Any], config: HostConfig) -> UpdateResponse:
    try:
        request = parse_update_request(message)
        _warn_relative_root(request.root)
        logger.info(
            "Update request: root=%s lang=%s force=%s items=%d",
            request.root,
            request.lang,
            request.force,
            len(request.payload),
        )
        result = apply(
            request.root,
            request.lang,
            request.force,
            request.payload,
            namespaces=config.namespaces,
            indent=config.indent,
        )
    except RequestValidationError as exc:
        logger.warning("Rejected request: %s", exc)
        return UpdateResponse(
            success=False,
            message=f"Error: {exc}",
            error=str(exc),
            errors=exc.messages,
        )
    logger.info("Result: %s", result.message)
    return UpdateResponse(
        success=result.success,
        message=result.message,
        updated_files=result.updated_files,
        errors=result.errors,
        skipped=result.skipped,
    )


def process_template(message: Dict[str, Any], config: HostConfig) -> TemplateResponse:
    try:
        request = parse_template_request(message)
        _warn_relative_root(request.root)
        resolution = lookup(
            request.root, request.lang, request.key, namespaces=config.namespaces
        )
    except RequestValidationError as exc:
        logger.warning("Rejected template request: %s", exc)
        return TemplateResponse(success=False, message=f"Error: {exc}", error=str(exc))
    if resolution is None:
        error = (
            f"Key not found in any namespace: {request.key} "
            f"(searched: {', '.join(config.namespaces)})"
        )
        return TemplateResponse(success=False, message=error, error=error)
    return TemplateResponse(
        success=True,
        template=resolution.current,
        namespace=resolution.namespace,
        file=str(resolution.document.path),
        message=f"Found {request.key} in {resolution.namespace}",
    )


class NativeMessagingHost:
    def __init__(
        self,
        config: HostConfig,
        stdin: Optional[IO[bytes]] = None,
        stdout: Optional[IO[bytes]] = None,
    ):
        self.config = config
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self._responded = False
        self._writing = False
        self._exit_requested = False
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            ACTION_UPDATE: lambda msg: process_update(msg, self.config).to_wire(),
            ACTION_GET_TEMPLATE: lambda msg: process_template(msg, self.config).to_wire(),
        }

    @property
    def responded(self) -> bool:
        return self._responded

    def install_signal_handlers(self) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, self._on_signal)

    def _on_signal(self, signum: int, _frame: Any) -> None:
        logger.info("Native host received %s", signal.Signals(signum).name)
        if self._writing:
            # Let the frame finish; send() exits afterwards.
            self._exit_requested = True
            return
        raise SystemExit(0)

    def handle_message(self, message: Any) -> Dict[str, Any]:
        if not isinstance(message, dict):
            return UpdateResponse.failure("Request must be a JSON object").to_wire()
        action = str(message.get("action") or ACTION_UPDATE).strip().lower()
        handler = self._handlers.get(action)
        if handler is None:
            return UpdateResponse.failure(f"Unknown action: {action}").to_wire()
        return handler(message)

    def send(self, response: Dict[str, Any]) -> bool:
        """Write the single response frame and close stdout.

        Returns False when a response was already sent.
        """
        if self._responded:
            logger.debug("send ignored: response already sent")
            return False
        self._responded = True
        self._writing = True
        try:
            try:
                size = write_frame(self._stdout, response)
            except (TypeError, ValueError) as exc:
                logger.error("Response serialization failed: %s", exc)
                size = write_frame(
                    self._stdout,
                    UpdateResponse.failure(
                        f"JSON serialization error: {exc}", "Failed to serialize response"
                    ).to_wire(),
                )
            logger.debug("Sent response (%d bytes)", size)
        except OSError as exc:
            logger.error("stdout write error: %s", exc)
        finally:
            self._writing = False
            try:
                self._stdout.close()
            except OSError as exc:
                logger.debug("stdout close error: %s", exc)
        if self._exit_requested:
            raise SystemExit(0)
        return True

    def run(self, startup_error: Optional[str] = None) -> int:
        """Serve one request. ``startup_error`` answers it with a failure
        after the request has been read, so the caller still gets a frame."""
        logger.debug("Native host started (pid %s)", os.getpid())
        try:
            try:
                payload = read_frame(self._stdin, self.config.max_message_bytes)
                logger.debug("Received frame (%d bytes)", len(payload))
                message = decode_payload(payload)
            except MessageParseError as exc:
                logger.error("JSON parse error: %s", exc)
                self.send(
                    UpdateResponse.failure(
                        f"JSON parse error: {exc}", f"Failed to parse message: {exc}"
                    ).to_wire()
                )
                return 0
            except ProtocolError as exc:
                logger.error("Protocol error: %s", exc)
                self.send(UpdateResponse.failure(f"Protocol error: {exc}").to_wire())
                return 0
            if startup_error:
                self.send(UpdateResponse.failure(startup_error, f"Error: {startup_error}").to_wire())
                return 0
            self.send(self.handle_message(message))
        except Exception as exc:
            logger.exception("Native host error")
            self.send(
                UpdateResponse.failure(
                    f"Uncaught exception: {exc}", f"Fatal error: {exc}"
                ).to_wire()
            )
        return 0
