"""Command line entry point running prompt commands and code reviews headlessly."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.client import ClientSettings, CompletionClient
from .commands.catalog import PromptCommand
from .commands.session import CommandSession, SessionResult
from .editor.document_model import DocumentBuffer
from .editor.selection_gateway import SelectionGateway, StaticDocumentProvider
from .errors import ChatStudioError, MissingAPIKeyError
from .review.panel import ReviewPanel
from .review.reviewer import CodeReviewer
from .services.settings import Settings, SettingsStore, redact_secret
from .services.telemetry import TelemetryClient, telemetry_enabled
from .utils import logging as logging_utils

_LOGGER = logging.getLogger(__name__)
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_ESCAPED_FIELDS = {"line_break"}


def configure_logging(debug: bool = False, *, settings: Settings | None = None, force: bool = False) -> None:
    files = logging_utils.setup_from_settings(settings, debug=debug, force=force)
    _LOGGER.debug("Logging to %s (stream trace in %s)", files.main, files.stream.name)


def load_settings(
    path: Path | None = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``chatstudio`` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = _env_flag("CHATSTUDIO_DEBUG", default=False) or args.debug
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("CHATSTUDIO_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    settings = load_settings(resolved_path, store=store, overrides=cli_overrides or None)
    if args.dump_settings:
        _dump_settings(settings, store, overrides=cli_overrides)
        return 0
    if settings.debug_logging and not debug:
        configure_logging(settings=settings, force=True)

    telemetry_client = TelemetryClient(enabled=telemetry_enabled(settings))
    telemetry_client.listen("command.completed", "stream.chunk_dropped", "review.cancelled")

    handler = _HANDLERS.get(args.action)
    if handler is None:
        parser.print_help()
        return 2
    try:
        return asyncio.run(handler(args, settings))
    except (ChatStudioError, OSError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    finally:
        telemetry_client.flush()


async def _run_command(args: argparse.Namespace, settings: Settings) -> int:
    if args.single:
        settings = replace(settings, single_response=True)
    path = Path(args.file).expanduser()
    document = DocumentBuffer.from_file(path)
    start, end = _parse_selection(args.selection, len(document.text))
    document.select(start, end)

    client = _build_client(settings)
    gateway = SelectionGateway(StaticDocumentProvider(document))
    session = CommandSession(settings, gateway, client=client)
    try:
        result = await session.execute(PromptCommand.parse(args.command))
    finally:
        await client.aclose()
    _report_session(result)
    if not result.ok:
        return 1
    if args.dry_run:
        sys.stdout.write(document.text)
    else:
        document.save()
        _LOGGER.info("Updated %s", path)
    return 0


async def _run_review(args: argparse.Namespace, settings: Settings) -> int:
    client = _build_client(settings)
    panel = ReviewPanel(Path(args.repo).expanduser())
    panel.reviewer = CodeReviewer(
        client,
        prompt_template=settings.code_review_prompt,
        path_resolver=panel.resolve_full_path,
    )
    try:
        items = await panel.run()
    finally:
        await client.aclose()
    for item in items:
        sys.stdout.write(f"## {item.file_name} ({item.status})\n\n{item.review.strip()}\n\n")
        if args.show_diff:
            sys.stdout.write(f"```diff\n{panel.diff_view(item.file_name)}\n```\n\n")
    return 0


async def _list_models(args: argparse.Namespace, settings: Settings) -> int:
    client = _build_client(settings)
    try:
        models = await client.list_models(force_refresh=True)
    finally:
        await client.aclose()
    for model in models:
        sys.stdout.write(f"{model}\n")
    return 0


_HANDLERS = {
    "run": _run_command,
    "review": _run_review,
    "models": _list_models,
}


def _build_client(settings: Settings) -> CompletionClient:
    if not settings.api_key:
        raise MissingAPIKeyError()
    return CompletionClient(ClientSettings.from_settings(settings))


def _report_session(result: SessionResult) -> None:
    if result.routed_to_chat or result.cancelled:
        return
    dropped = sum(result.dropped_chunks.values())
    _LOGGER.info(
        "%s finished: %s mutation(s), %s dropped chunk(s)",
        result.command.label,
        result.mutations_applied,
        dropped,
    )


def _parse_selection(raw: str | None, length: int) -> tuple[int, int]:
    if not raw:
        return 0, length
    start_text, sep, end_text = raw.partition(":")
    if not sep:
        raise ChatStudioError(f"Selection '{raw}' must use START:END syntax.")
    try:
        start = int(start_text) if start_text.strip() else 0
        end = int(end_text) if end_text.strip() else length
    except ValueError as exc:
        raise ChatStudioError(f"Selection '{raw}' must contain integer offsets.") from exc
    return start, end


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatstudio",
        description="Run AI prompt commands on source files and review git changes.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.chatstudio/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    actions = parser.add_subparsers(dest="action")

    run = actions.add_parser("run", help="Run a prompt command on a file selection.")
    run.add_argument("command", choices=[member.value for member in PromptCommand])
    run.add_argument("file", help="File to edit.")
    run.add_argument(
        "--selection",
        metavar="START:END",
        help="Character offsets of the selection (defaults to the whole file).",
    )
    run.add_argument("--single", action="store_true", help="Request a single complete response.")
    run.add_argument("--dry-run", action="store_true", help="Print the result instead of saving.")

    review = actions.add_parser("review", help="Review the git working tree changes.")
    review.add_argument("--repo", default=".", help="Repository path (default: current directory).")
    review.add_argument("--show-diff", action="store_true", help="Print the diff of each file.")

    actions.add_parser("models", help="List the models offered by the endpoint.")
    return parser


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        if key in _ESCAPED_FIELDS:
            raw_value = raw_value.replace("\\r", "\r").replace("\\n", "\n")
        overrides[key] = _coerce_value(annotation, raw_value)
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    if target is str or target is Any:
        # Whitespace is significant in string settings such as line_break.
        return raw_value

    normalized = raw_value.strip()
    if normalized.lower() in {"none", "null"}:
        return None
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is dict:
        try:
            return json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin in {list, dict}:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": sorted(name for name in os.environ if name.startswith("CHATSTUDIO_")),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")


__all__ = ["configure_logging", "load_settings", "main"]
