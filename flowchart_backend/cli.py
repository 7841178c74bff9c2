#!/usr/bin/env python3
"""Flowchart tool CLI - parse, lay out, validate and serve flowcharts."""

import argparse
import json
import logging
import sys

from flowchart_core import (
    LayoutConfig,
    build_graph,
    load_flowchart,
    parse_flowchart,
    preprocess,
    validate_graph,
    validation_summary,
)


def _json_out(data, code=0):
    print(json.dumps(data, indent=2))
    sys.exit(code)


def _read_source(path):
    """Read flowchart text from a file path, or stdin for '-'."""
    try:
        if path == "-":
            return sys.stdin.read()
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError as e:
        _json_out({"status": "error", "error": f"Cannot decode {path} as UTF-8: {e.reason}"}, code=1)
    except OSError as e:
        _json_out({"status": "error", "error": f"Cannot read {path}: {e.strerror}"}, code=1)


# ── Commands ─────────────────────────────────────────────────────────────────

def cmd_parse(args):
    result = parse_flowchart(preprocess(_read_source(args.file)))
    graph = build_graph(result)
    out = graph.to_json_dict()
    out["dropped_lines"] = result.dropped
    _json_out(out)


def cmd_layout(args):
    config = LayoutConfig.from_env()
    if args.rank_spacing is not None:
        config.rank_spacing = args.rank_spacing
    if args.node_spacing is not None:
        config.node_spacing = args.node_spacing
    text = _read_source(args.file)
    try:
        graph = load_flowchart(text, args.direction, config)
    except ValueError as e:
        _json_out({"status": "error", "error": str(e)}, code=2)
    _json_out(graph.to_json_dict())


def cmd_validate(args):
    graph = load_flowchart(_read_source(args.file))
    issues = validate_graph(graph)
    summary = validation_summary(issues)
    _json_out(
        {"issues": [i.to_dict() for i in issues], "summary": summary},
        code=0 if summary["valid"] else 1,
    )


def cmd_serve(args):
    import uvicorn
    from .main import app

    uvicorn.run(app, host=args.host, port=args.port)


def main(argv=None):
    parser = argparse.ArgumentParser(prog="flowchart-tool", description="Flowchart editor tooling")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("parse", help="Parse flowchart text into nodes and edges")
    p.add_argument("file", help="Flowchart file, or - for stdin")

    p = sub.add_parser("layout", help="Parse and lay out a flowchart")
    p.add_argument("file", help="Flowchart file, or - for stdin")
    p.add_argument("--direction", default=None, help="TB or LR (default: header direction)")
    p.add_argument("--rank-spacing", type=float, default=None)
    p.add_argument("--node-spacing", type=float, default=None)

    p = sub.add_parser("validate", help="Report structural issues")
    p.add_argument("file", help="Flowchart file, or - for stdin")

    p = sub.add_parser("serve", help="Run the editor backend")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8765)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cmd_map = {
        "parse": cmd_parse,
        "layout": cmd_layout,
        "validate": cmd_validate,
        "serve": cmd_serve,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
