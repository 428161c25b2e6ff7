#!/usr/bin/env python3
"""
솔버/탐험기를 명령행에서 실행하는 스크립트

예:
    python run_solver.py solve CuCuCuCu:RuRuRuRu CuCuCuCu RuRuRuRu --ops Stacker
    python run_solver.py explore CuCuCuCu --ops "Rotator CW" Cutter --depth 2
    python run_solver.py validate CuCuCuCu Cu:CuCu
"""

from __future__ import annotations
import argparse
import json
import sys
from typing import List, Optional

from i18n import _, set_language
import shape_solver
from shape import find_shape_code_errors
from shape_operations import Operation
from shape_analyzer import filter_starting_shapes
from shape_solver import (
    ShapeSolver, Cancelled, NoSolutionFound, SearchMethod,
    DEFAULT_HEURISTIC_DIVISOR, DEFAULT_MAX_STATES_PER_LEVEL,
)
from shape_explorer import explore_shape_space, DEFAULT_DEPTH_LIMIT

ALL_OPERATION_NAMES = [op.value for op in Operation]


def _print_status(message: str):
    print(message, file=sys.stderr)


def _validate_codes(codes: List[str], label: str) -> bool:
    ok = True
    for code in codes:
        for error in find_shape_code_errors(code):
            print(_("cli.invalid_code", label=label, code=code, error=error))
            ok = False
    return ok


def _format_step(index: int, step) -> str:
    inputs = ", ".join(code for _id, code in step.inputs)
    outputs = ", ".join(code for _id, code in step.outputs) or "-"
    color = f" ({step.params['color']})" if step.params.get("color") else ""
    return f"{index}. {_(step.operation)}{color}: {inputs} -> {outputs}"


def cmd_solve(args) -> int:
    starting = list(args.starting)
    if not _validate_codes([args.target], _("cli.label.target")):
        return 1
    if not _validate_codes(starting, _("cli.label.starting")):
        return 1
    if args.filter_unused:
        starting = filter_starting_shapes(starting, args.target)
        if not starting:
            print(_("cli.no_starting_shapes"))
            return 1

    try:
        solver = ShapeSolver(
            args.target, starting, args.ops,
            max_layers=args.max_layers,
            max_states_per_level=args.max_states,
            prevent_waste=args.prevent_waste,
            orientation_sensitive=args.orientation_sensitive,
            monolayer_painting=args.monolayer_painting,
            heuristic_divisor=args.heuristic_divisor,
            search_method=SearchMethod.BFS if args.method == "bfs" else SearchMethod.ASTAR,
            on_status=None if args.quiet else _print_status,
        )
        result = solver.solve()
    except NoSolutionFound as e:
        print(_("status.no_solution"))
        print(_("cli.states_explored", states=e.states_explored))
        return 1
    except (Cancelled, KeyboardInterrupt):
        print(_("status.cancelled"))
        return 1
    except ValueError as e:
        print(_("status.error", error=str(e)))
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return 0

    print(_("status.solved", depth=result.depth, states=result.states_explored))
    for index, step in enumerate(result.solution_path, 1):
        print(_format_step(index, step))
    return 0


def cmd_explore(args) -> int:
    if not _validate_codes(list(args.starting), _("cli.label.starting")):
        return 1
    try:
        graph = explore_shape_space(
            args.starting, args.ops, depth_limit=args.depth, max_layers=args.max_layers,
            on_status=None if args.quiet else _print_status,
        )
    except (Cancelled, KeyboardInterrupt):
        print(_("status.cancelled"))
        return 1
    except ValueError as e:
        print(_("status.error", error=str(e)))
        return 1

    if args.json:
        print(json.dumps(graph, ensure_ascii=False, indent=2))
    else:
        for node in graph["shapes"]:
            print(f"{node['id']}: {node['code']}")
        print(_("explorer.status.complete", shapes=len(graph["shapes"]), ops=len(graph["ops"])))
    return 0


def cmd_validate(args) -> int:
    ok = _validate_codes(list(args.codes), _("cli.label.code"))
    if ok:
        print(_("cli.all_valid", count=len(args.codes)))
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=_("cli.description"))
    parser.add_argument("--lang", default=None, help="Message language (en, ko)")
    parser.add_argument("--verbose", action="store_true", help="Print solver debug log")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_common(p):
        p.add_argument("--ops", nargs="+", default=ALL_OPERATION_NAMES, choices=ALL_OPERATION_NAMES,
                       metavar="OPERATION", help="Enabled operations (default: all)")
        p.add_argument("--max-layers", type=int, default=4, help="Maximum shape layers")
        p.add_argument("--json", action="store_true", help="Print the raw result as JSON")
        p.add_argument("--quiet", action="store_true", help="Do not print progress")

    solve = sub.add_parser("solve", help="Find an operation sequence for a target shape")
    solve.add_argument("target", help="Target shape code")
    solve.add_argument("starting", nargs="*", help="Starting shape codes")
    add_common(solve)
    solve.add_argument("--method", choices=["astar", "bfs"], default="astar")
    solve.add_argument("--max-states", type=int, default=DEFAULT_MAX_STATES_PER_LEVEL,
                       help="BFS states kept per depth level")
    solve.add_argument("--prevent-waste", action="store_true")
    solve.add_argument("--orientation-sensitive", action="store_true")
    solve.add_argument("--monolayer-painting", action="store_true")
    solve.add_argument("--heuristic-divisor", type=float, default=DEFAULT_HEURISTIC_DIVISOR)
    solve.add_argument("--filter-unused", action="store_true",
                       help="Drop starting shapes sharing no part kind with the target")
    solve.set_defaults(func=cmd_solve)

    explore = sub.add_parser("explore", help="Build the reachability graph of starting shapes")
    explore.add_argument("starting", nargs="+", help="Starting shape codes")
    add_common(explore)
    explore.add_argument("--depth", type=int, default=DEFAULT_DEPTH_LIMIT, help="Depth limit")
    explore.set_defaults(func=cmd_explore)

    validate = sub.add_parser("validate", help="Check shape codes")
    validate.add_argument("codes", nargs="+")
    validate.set_defaults(func=cmd_validate)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.lang:
        set_language(args.lang)
    if args.verbose:
        shape_solver._log_callback = _print_status
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
