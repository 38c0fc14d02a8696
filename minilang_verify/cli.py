"""Command-line interface.

Commands:
  minilang-verify verify <file>            check every assert of a program
  minilang-verify equiv <file1> <file2>    check two programs for equivalence

Exit codes: 0 verified/equivalent, 1 violated/not equivalent,
2 inconclusive, 3 parse or configuration error.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys

from . import __version__
from .ast_nodes import format_program
from .config import load_config
from .errors import AnalysisError, ConfigError, ParseError
from .pipeline import Outcome, check_equivalence, verify
from .solver import Z3Solver
from .ssa import format_ssa

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INCONCLUSIVE = 2
EXIT_ERROR = 3

_EXIT_CODES = {
    Outcome.VERIFIED: EXIT_OK,
    Outcome.EQUIVALENT: EXIT_OK,
    Outcome.VIOLATED: EXIT_FAILED,
    Outcome.NOT_EQUIVALENT: EXIT_FAILED,
    Outcome.INCONCLUSIVE: EXIT_INCONCLUSIVE,
}

SHOW_CHOICES = ("ast", "ssa", "optimized", "cfg", "smt")


def _read(path):
    with open(path, "r") as f:
        return f.read()


def _config_from_args(args):
    config = load_config(args.config)
    overrides = {}
    if args.unroll is not None:
        overrides["unroll_depth"] = args.unroll
    if args.timeout is not None:
        overrides["solver_timeout_ms"] = args.timeout
    if args.models is not None:
        overrides["max_models"] = args.models
    if args.no_optimize:
        overrides["optimize"] = False
        overrides["encode_optimized"] = False
    if args.encode_optimized:
        overrides["encode_optimized"] = True
    return dataclasses.replace(config, **overrides)


def _print_sections(report, show):
    for index, analysis in enumerate(report.analyses, start=1):
        title = f"Program {index}" if len(report.analyses) > 1 else "Program"
        if "ast" in show:
            print(f"== AST: {title}")
            print(format_program(analysis.ast))
        if "ssa" in show:
            print(f"== SSA: {title}")
            print(analysis.ssa)
        if "optimized" in show and analysis.optimized is not None:
            print(f"== Optimized SSA: {title}")
            print(format_ssa(analysis.optimized))
        if "cfg" in show:
            print(f"== CFG: {title}")
            print(json.dumps(analysis.cfg.to_dict(), indent=2))
    if "smt" in show and report.script is not None:
        print("== SMT")
        print(report.script)


def _report(report, args) -> int:
    _print_sections(report, args.show or ())
    print(report.message)
    for i, model in enumerate(report.counterexamples, start=1):
        print(f"counterexample {i}: {json.dumps(model, sort_keys=True)}")
    return _EXIT_CODES[report.outcome]


def cmd_verify(args: argparse.Namespace, config) -> int:
    solver = Z3Solver(config.solver_timeout_ms, config.max_models)
    report = verify(_read(args.file), solver, config)
    return _report(report, args)


def cmd_equiv(args: argparse.Namespace, config) -> int:
    solver = Z3Solver(config.solver_timeout_ms, config.max_models)
    report = check_equivalence(_read(args.file1), _read(args.file2), solver, config)
    return _report(report, args)


def _add_common(p):
    p.add_argument("--unroll", type=int, help="Unroll loops to this depth instead of encoding them once")
    p.add_argument("--timeout", type=int, help="Solver timeout in milliseconds")
    p.add_argument("--models", type=int, help="Number of counterexamples to report")
    p.add_argument("--no-optimize", action="store_true", dest="no_optimize",
                   help="Skip constant propagation and dead-code elimination")
    p.add_argument("--encode-optimized", action="store_true", dest="encode_optimized",
                   help="Encode the optimized SSA instead of the raw SSA")
    p.add_argument("--show", action="append", choices=SHOW_CHOICES,
                   help="Print an intermediate form (repeatable)")
    p.add_argument("--config", help="Path to a JSON config file")
    p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="minilang-verify",
        description="Assertion checking and equivalence checking for MiniLang programs",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p_verify = subparsers.add_parser("verify", help="Check that every assert holds")
    p_verify.add_argument("file", help="MiniLang source file")
    _add_common(p_verify)
    p_verify.set_defaults(func=cmd_verify)

    p_equiv = subparsers.add_parser("equiv", help="Check two programs for equivalence")
    p_equiv.add_argument("file1", help="First MiniLang source file")
    p_equiv.add_argument("file2", help="Second MiniLang source file")
    _add_common(p_equiv)
    p_equiv.set_defaults(func=cmd_equiv)
    return parser


def _setup_logging(verbose):
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def run(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return EXIT_ERROR

    _setup_logging(args.verbose)
    try:
        config = _config_from_args(args)
        if not args.verbose:
            logging.getLogger().setLevel(config.log_level.upper())
        return args.func(args, config)
    except ParseError as e:
        print(f"parse error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except AnalysisError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
