"""Command-line interface for PersonaLens."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from personalens.background import LocalGatewayClient, ProxyClient, start_background
from personalens.bridge import classify_url
from personalens.browser import Browser, PageLoadError
from personalens.config import Settings
from personalens.gateway import build_gateway
from personalens.models import AnalysisReport, utc_timestamp
from personalens.orchestrator import AnalysisError, Milestone, ReportOrchestrator, progress_for
from personalens.personas import PersonaId, describe, list_personas
from personalens.storage import LocalState


def _out(msg: str = "") -> None:
    """Print a status message to stderr so it doesn't mix with JSON output."""
    print(msg, file=sys.stderr, flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="personalens",
        description="Persona-driven accessibility critiques of web pages.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze a page for one persona")
    analyze.add_argument("url", help="URL of the page to analyze")
    analyze.add_argument(
        "--html",
        default=None,
        help="Read the page document from this file instead of fetching the URL",
    )
    analyze.add_argument(
        "-p", "--persona",
        choices=list_personas(),
        default=None,
        help="Persona to analyze for (default: last selected persona)",
    )
    analyze.add_argument(
        "-k", "--key",
        default=None,
        help="PersonaLens API key (default: stored key). Saved for next time.",
    )
    analyze.add_argument(
        "--local",
        action="store_true",
        help="Run the gateway in-process instead of calling the remote proxy",
    )
    analyze.add_argument(
        "-o", "--output",
        default=None,
        help="Output file or directory (default: stdout)",
    )

    serve = sub.add_parser("serve", help="Run the gateway HTTP service")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8787)

    sub.add_parser("personas", help="List the available personas")

    set_key = sub.add_parser("set-key", help="Store the PersonaLens API key")
    set_key.add_argument("key")

    set_persona = sub.add_parser("set-persona", help="Store the default persona")
    set_persona.add_argument("persona", choices=list_personas())

    return parser


def export_report(report: AnalysisReport, output: Path) -> Path:
    """Write ``report`` as JSON; a directory gets a dated default file name."""
    if output.is_dir():
        date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        output = output / f"personalens-report-{report.persona.value}-{date}.json"
    data = report.model_dump(by_alias=True, mode="json")
    data["exportedAt"] = utc_timestamp()
    output.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return output


def _open_page(browser: Browser, url: str, html_path: str | None) -> None:
    if html_path:
        browser.open_tab(url, Path(html_path).read_text(encoding="utf-8"))
    elif classify_url(url) is not None:
        # Nothing to fetch; the bridge refuses these pages before touching them.
        browser.open_tab(url)
    else:
        browser.open(url)


def _analyze(args: argparse.Namespace, settings: Settings) -> int:
    state = LocalState(settings.state_file)
    if args.persona:
        state.persona = PersonaId(args.persona)
    if args.key:
        state.credential = args.key

    persona = PersonaId(args.persona) if args.persona else state.persona
    credential = args.key or state.credential
    if persona is None or not credential:
        _out("Select a persona and configure your PersonaLens API key first "
             "(see `personalens set-persona` and `personalens set-key`).")
        return 2

    browser = Browser(settings)
    try:
        _open_page(browser, args.url, args.html)
    except (PageLoadError, OSError) as exc:
        _out(f"[!] {exc}")
        return 1

    reports = LocalGatewayClient(build_gateway(settings)) if args.local else ProxyClient(settings)
    background = start_background(reports, settings)

    def show(milestone: Milestone) -> None:
        _out(f"  [{progress_for(milestone):>4.0%}] {milestone.value}")

    orchestrator = ReportOrchestrator(browser, background, settings=settings, on_milestone=show)
    _out(f"Analyzing {args.url} as {persona.value}: {describe(persona)}")
    try:
        report = asyncio.run(orchestrator.run(persona, credential))
    except AnalysisError as exc:
        _out(f"[!] {exc}")
        return 1

    if args.output:
        path = export_report(report, Path(args.output))
        print(f"Report written to {path}")
    else:
        print(json.dumps(report.model_dump(by_alias=True, mode="json"), indent=2, ensure_ascii=False))
    return 0


def _serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from personalens.gateway.app import create_app

    app = create_app(lambda: build_gateway(settings))
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    settings = Settings.from_env()

    if args.command == "analyze":
        return _analyze(args, settings)
    if args.command == "serve":
        return _serve(args, settings)
    if args.command == "personas":
        for persona in PersonaId:
            print(f"{persona.value:<18} {describe(persona)}")
        return 0

    state = LocalState(settings.state_file)
    if args.command == "set-key":
        state.credential = args.key
        print("API key saved")
    elif args.command == "set-persona":
        state.persona = PersonaId(args.persona)
        print(f"Default persona set to {args.persona}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
