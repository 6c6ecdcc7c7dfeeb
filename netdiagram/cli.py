#!/usr/bin/env python3
"""netdiagram CLI - validate, partition, render and weathermap network graphs."""

import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError

from .analysis import summarize_sheets
from .config import OverlayOptions, RenderOptions
from .constants import ROOT_SHEET_ID
from .drawing import to_svg
from .errors import NetDiagramError
from .layout import ENGINES
from .logging import enable_debug_logging, get_logger
from .models import Graph, MetricsData, Theme
from .overlay import WeathermapController
from .partition import partition
from .renderer import render
from .scheduler import ManualScheduler
from .sources import MockMetricsSource
from .validation import prune_invalid, validate_graph, validation_summary

logger = get_logger(__name__)


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _fail(message):
    _json_out({"status": "error", "error": message}, code=1)


def _read_json(path):
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        _fail(f"Cannot read {path}: {e.strerror}")
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON in {path}: {e}")


def _load_graph(path):
    try:
        return Graph.from_json_dict(_read_json(path))
    except ValidationError as e:
        _fail(f"Invalid graph in {path}: {e.error_count()} schema errors")


def _partition(args):
    graph, issues = prune_invalid(_load_graph(args.graph))
    engine = ENGINES[args.engine]()
    return partition(graph, engine.layout(graph), engine), issues


# ── Commands ─────────────────────────────────────────────────────────────────

def cmd_validate(args):
    issues = validate_graph(_load_graph(args.graph))
    summary = validation_summary(issues)
    _json_out({
        "status": "ok",
        "valid": summary["valid"],
        "summary": summary,
        "issues": [issue.to_dict() for issue in issues],
    })


def cmd_partition(args):
    sheets, issues = _partition(args)
    _json_out({
        "status": "ok",
        "issues": len(issues),
        "sheets": [
            {
                "id": sheet.id,
                "parent": sheet.parent,
                "nodes": [n.id for n in sheet.graph.nodes],
                "links": sheet.graph.link_ids(),
            }
            for sheet in sheets.values()
        ],
    })


def cmd_render(args):
    sheets, _ = _partition(args)
    options = RenderOptions(theme=Theme(args.theme) if args.theme else None)
    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    files = []
    for sheet in sheets.values():
        target = out_dir / f"{sheet.id}.svg"
        target.write_text(to_svg(render(sheet, options)), encoding="utf-8")
        files.append(str(target))
    _json_out({"status": "ok", "files": files})


def cmd_weathermap(args):
    sheets, _ = _partition(args)
    root = sheets[ROOT_SHEET_ID]

    if args.metrics:
        try:
            metrics = MetricsData.model_validate(_read_json(args.metrics))
        except ValidationError as e:
            _fail(f"Invalid metrics in {args.metrics}: {e.error_count()} schema errors")
    else:
        metrics = MockMetricsSource(seed=args.seed).generate(root.graph)

    try:
        options = OverlayOptions.from_env()
    except ValueError as e:
        _fail(f"Invalid overlay settings: {e}")

    program = render(root, RenderOptions(theme=Theme(args.theme) if args.theme else None))
    scheduler = ManualScheduler(options.time_slice_ms)
    controller = WeathermapController(program, scheduler, options)
    controller.apply(metrics)
    scheduler.run_until_idle()

    Path(args.out).write_text(to_svg(program), encoding="utf-8")
    _json_out({
        "status": "ok",
        "file": args.out,
        "tier": controller.tier.value,
        "built": controller.built_count,
        "pending": controller.pending_count,
    })


def cmd_summarize(args):
    sheets, issues = _partition(args)
    _json_out({
        "status": "ok",
        "issues": len(issues),
        "summary": [s.to_dict() for s in summarize_sheets(sheets)],
    })


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="Network diagram toolkit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate")
    p.add_argument("graph")

    p = sub.add_parser("partition")
    p.add_argument("graph")
    p.add_argument("--engine", choices=sorted(ENGINES), default="tree")

    p = sub.add_parser("render")
    p.add_argument("graph")
    p.add_argument("--out-dir", required=True)
    p.add_argument("--engine", choices=sorted(ENGINES), default="tree")
    p.add_argument("--theme", choices=[t.value for t in Theme], default=None)

    p = sub.add_parser("weathermap")
    p.add_argument("graph")
    p.add_argument("--out", required=True)
    source = p.add_mutually_exclusive_group()
    source.add_argument("--metrics", default=None)
    source.add_argument("--mock", action="store_true")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--engine", choices=sorted(ENGINES), default="tree")
    p.add_argument("--theme", choices=[t.value for t in Theme], default=None)

    p = sub.add_parser("summarize")
    p.add_argument("graph")
    p.add_argument("--engine", choices=sorted(ENGINES), default="tree")

    args = parser.parse_args(argv)
    if args.verbose:
        enable_debug_logging()

    cmd_map = {
        "validate": cmd_validate,
        "partition": cmd_partition,
        "render": cmd_render,
        "weathermap": cmd_weathermap,
        "summarize": cmd_summarize,
    }
    try:
        cmd_map[args.command](args)
    except NetDiagramError as e:
        logger.debug("Command failed", exc_info=True)
        _fail(str(e))


if __name__ == "__main__":
    main()
