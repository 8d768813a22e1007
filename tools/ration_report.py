"""Print a daily ration for one animal from the command line.

Quick use:
    $ python tools/ration_report.py lactating_cow 500 --milk 12 \\
        --feed Beda --feed "Arpa doni" --feed "Soya shroti"

Pin a feed to a fixed amount (kg as-fed per day) with ``--amount``; the rest of
the ration is distributed around it:
    $ python tools/ration_report.py mature_bull 450 --feed Beda --feed "Arpa doni" \\
        --amount "Beda=6,5"

``--json`` prints the full result for other programs; ``--list-feeds`` shows the
reference feeds grouped by class.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

import pandas as pd

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ration.activity import log_event  # noqa: E402
from ration.models import FEED_CLASSES, ReferenceDataError  # noqa: E402
from ration.numbers import parse_amount, parse_override  # noqa: E402
from ration.reference import ReferenceData, default_reference_data, load_reference_data  # noqa: E402
from ration_engine import RationResult, compute_ration  # noqa: E402

EXIT_USAGE = 2
EXIT_DATA = 1


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compute a daily feed ration (requirement, mass, distribution, tips)",
    )
    parser.add_argument("category", nargs="?", help="Animal category key, e.g. lactating_cow")
    parser.add_argument("weight", nargs="?", help="Live weight in kg")
    parser.add_argument("--milk", default="0", help="Milk yield in l/day (lactating cows)")
    parser.add_argument(
        "--feed",
        action="append",
        default=[],
        metavar="NAME",
        help="Selected feed; repeat for every feed in the ration",
    )
    parser.add_argument(
        "--amount",
        action="append",
        default=[],
        metavar="NAME=KG",
        help="Pin a selected feed to a fixed as-fed amount per day",
    )
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--list-feeds", action="store_true", help="List reference feeds and exit")
    parser.add_argument("--data-dir", help="Directory with the reference tables")
    return parser.parse_args(argv)


def feeds_table(data: ReferenceData) -> str:
    frame = pd.DataFrame(
        [
            {
                "class": feed.feed_class.value,
                "feed": feed.name,
                "ME": feed.energy_me,
                "NeL": feed.energy_nel,
                "CP": feed.protein,
                "DM": feed.dm,
            }
            for feed in data.feeds
        ]
    )
    order = {cls.value: idx for idx, cls in enumerate(FEED_CLASSES)}
    frame = frame.sort_values("class", key=lambda col: col.map(order), kind="stable")
    return frame.to_string(index=False)


def format_summary(result: RationResult) -> str:
    norm, mass, cap = result.norm, result.mass, result.cap
    lines = [
        f"{result.policy.label}: {result.weight:g} kg, milk {result.milk:g} l/day",
        f"Requirement: {norm.energy_mj:.2f} MJ {norm.basis.value}, {norm.protein_g:.0f} g CP"
        f" (limiting: {mass.limiting.value})",
    ]
    if norm.note:
        lines.append(f"Note: {norm.note}")
    lines.append(
        f"Solved mass: {mass.total:.2f} kg as-fed | DM limit {cap.dm_max:.2f} kg"
        f" | effective {cap.effective_total:.2f} kg | coverage {cap.coverage_pct}%"
    )

    frame = result.to_frame()
    if not frame.empty:
        lines.append("")
        lines.append(frame.round(2).to_string(index=False))
        lines.append(f"Total DM: {result.distribution.dm_total:.2f} kg")

    for title, messages in (("Warnings", result.warnings), ("Tips", result.tips)):
        if messages:
            lines.append("")
            lines.append(f"{title}:")
            lines.extend(f" - {message.text}" for message in messages)
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        data = load_reference_data(args.data_dir) if args.data_dir else default_reference_data()
    except ReferenceDataError as exc:
        print(f"Reference data error: {exc}", file=sys.stderr)
        return EXIT_DATA

    if args.list_feeds:
        print(feeds_table(data))
        return 0

    if not args.category or args.weight is None:
        print("category and weight are required (or use --list-feeds)", file=sys.stderr)
        return EXIT_USAGE

    if not data.is_category(args.category):
        known = ", ".join(key.value for key in data.categories())
        print(f"Unknown category {args.category!r}. Known: {known}", file=sys.stderr)
        return EXIT_USAGE

    weight = parse_amount(args.weight)
    milk = parse_amount(args.milk)
    if weight is None or milk is None:
        print("weight and --milk must be numbers", file=sys.stderr)
        return EXIT_USAGE

    unknown = [name for name in args.feed if data.feed(name) is None]
    if unknown:
        print(f"Unknown feed(s): {', '.join(unknown)}", file=sys.stderr)
        return EXIT_USAGE

    try:
        overrides = [parse_override(raw) for raw in args.amount]
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_USAGE

    trace = log_event(
        "cli_run",
        f"category={args.category} weight={weight:g} milk={milk:g} feeds={len(args.feed)} pins={len(overrides)}",
        op="cli",
        trace_prefix="RAT-",
    )
    result = compute_ration(args.category, weight, milk, args.feed, overrides, data=data)

    if args.json:
        payload = result.to_dict()
        payload["trace"] = trace
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print(format_summary(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
