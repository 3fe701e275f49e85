"""CLI entrypoint.

Commands:
- `transcript-sanitizer clean [FILE|-] [--config cleaning.yaml] [--lang ja] [--dictionary dict.yaml] [--json]`
- `transcript-sanitizer batch --config configs/batch.yaml`
- `transcript-sanitizer policy-diff --a <file.yaml> --b <file.yaml>`

`clean` writes the cleaned text (or, with --json, the text plus the outcome
summary) to stdout. Exit status 2 means the config or dictionary is invalid.
"""

from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from .config.loader import load_config, load_yaml
from .correction.dictionary import load_dictionary
from .errors import ConfigError
from .logging_ import setup_logging
from .pipeline.context import CleaningRequest
from .pipeline.sanitize import SanitizationPipeline
from .tools.policy_diff import main as policy_diff_main

log = logging.getLogger("transcript_sanitizer.cli")


def _read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _clean(args: argparse.Namespace) -> int:
    if args.verbose:
        setup_logging(level=logging.DEBUG if args.verbose > 1 else logging.INFO)
    config = load_config(args.config)
    corrector = load_dictionary(args.dictionary) if args.dictionary else None
    pipeline = SanitizationPipeline(config, corrector=corrector)
    outcome = pipeline.sanitize(CleaningRequest(_read_input(args.input), args.lang))
    if args.json:
        print(json.dumps({"final_text": outcome.final_text, **outcome.summary()}, ensure_ascii=False, indent=2))
    else:
        print(outcome.final_text)
    return 0


def _batch(args: argparse.Namespace) -> int:
    from .pipeline.batch import run_batch
    from .run_id import resolve_out_dir, resolve_run_id

    cfg = load_yaml(args.config)
    run_id = resolve_run_id(cfg)
    cfg.setdefault("run", {})["run_id"] = run_id
    out_dir = resolve_out_dir(cfg, run_id)
    setup_logging(log_dir=(cfg.get("run") or {}).get("log_dir") or os.path.join(out_dir, "logs"), run_id=run_id)
    manifest = run_batch(cfg)
    print(json.dumps(manifest["totals"]))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="transcript-sanitizer")
    sub = p.add_subparsers(dest="cmd", required=True)

    pc = sub.add_parser("clean", help="Sanitize one transcript")
    pc.add_argument("input", nargs="?", default="-", help="Transcript file, or - for stdin (default)")
    pc.add_argument("--config", default=None, help="Cleaning config YAML (defaults if omitted)")
    pc.add_argument("--lang", default="auto", help="Language tag, e.g. ja or en-US")
    pc.add_argument("--dictionary", default=None, help="Correction dictionary YAML")
    pc.add_argument("--json", action="store_true", help="Print the outcome summary as JSON")
    pc.add_argument("-v", "--verbose", action="count", default=0)

    pb = sub.add_parser("batch", help="Sanitize JSONL sources into Parquet")
    pb.add_argument("--config", required=True)

    pd = sub.add_parser("policy-diff", help="Diff two cleaning configs")
    pd.add_argument("--a", required=True)
    pd.add_argument("--b", required=True)

    args = p.parse_args(argv)

    try:
        if args.cmd == "policy-diff":
            print(policy_diff_main(args.a, args.b))
            return 0
        if args.cmd == "batch":
            return _batch(args)
        return _clean(args)
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
