"""Command line entrypoint: `serve` (default) and `check`."""

from __future__ import annotations

import argparse
import asyncio
import sys

from rich.console import Console
from rich.table import Table
from rich.text import Text

from copilot_bridge.config import BridgeSettings, load_settings, validate_settings
from copilot_bridge.log_utils import build_log_config, configure_logging
from copilot_bridge.probe import ProbeReport, probe_allowlist

# stdout carries the MCP transport while serving, so all CLI output uses stderr.
_console = Console(stderr=True, highlight=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="copilot-bridge",
        description="MCP server that lets Copilot delegate heavy analysis to Gemini.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="Run the MCP server on stdio (default)")
    check = sub.add_parser("check", help="Show the effective configuration and probe Gemini")
    check.add_argument("--no-probe", action="store_true", help="Skip launching gemini-mcp-tool")
    return parser


def render_settings(settings: BridgeSettings, warnings: list[str], report: ProbeReport | None) -> Table:
    table = Table(title="copilot-gemini-bridge", show_header=True)
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Copilot model", settings.model)
    table.add_row("Reasoning effort", settings.reasoning_effort)
    table.add_row("Timeout", f"{settings.timeout_ms:g} ms")
    table.add_row("Write access", "enabled" if settings.write_access else "disabled")
    if not settings.write_access:
        table.add_row("Excluded tools", ", ".join(settings.excluded_write_tools))
    table.add_row("Gemini model", settings.gemini_model)
    table.add_row("Gemini MCP", f"{settings.gemini_mcp_command} {settings.gemini_mcp_path}")
    table.add_row("Gemini allowlist", ", ".join(settings.gemini_tools) or "(empty)")
    if report is not None:
        if report.error:
            table.add_row("Probe", Text(f"failed: {report.error}", style="red"))
        else:
            table.add_row("Gemini tools", ", ".join(report.available) or "(none)")
            if report.missing:
                table.add_row("Not served", Text(", ".join(report.missing), style="red"))
    for warning in warnings:
        table.add_row("Warning", Text(warning, style="yellow"))
    return table


async def run_check(settings: BridgeSettings, *, probe: bool = True) -> int:
    warnings = validate_settings(settings)
    report = await probe_allowlist(settings) if probe else None
    _console.print(render_settings(settings, warnings, report))
    return 0 if report is None or report.ok else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(build_log_config(verbose=args.verbose, log_file=args.log_file))
    settings = load_settings()
    if args.command == "check":
        return asyncio.run(run_check(settings, probe=not args.no_probe))

    from copilot_bridge.server import serve

    asyncio.run(serve(settings))
    return 0


def main_entry() -> None:
    try:
        raise SystemExit(main(sys.argv[1:]))
    except KeyboardInterrupt:
        raise SystemExit(130)


if __name__ == "__main__":
    main_entry()
