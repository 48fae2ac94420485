#!env python3

import argparse
import logging
import time
from cgtrace.perfetto_writer import PerfettoWriter
from cgtrace.parse_callgrind import IDENTITY_POLICIES, parse_callgrind
from cgtrace.layout import profile_to_trace
from cgtrace.emit_trace import emit_trace

logger = logging.getLogger("callgrind_to_perfetto")


def run(filename, out, timestamp, root_name=None, identity="name"):
    """Converts the callgrind profile in `filename` to a perfetto trace in `out`."""
    profile = parse_callgrind(filename, identity=identity)
    roots = profile.roots()
    logger.info(
        "Parsed %d functions, %d root(s) from %s",
        len(profile.functions),
        len(roots),
        filename,
    )

    if root_name is not None:
        roots = [fn for fn in profile.functions.values() if fn.name == root_name]
        if not roots:
            raise ValueError(f"Unknown root function {root_name}")
    elif not roots:
        raise ValueError("The profile has no root function")

    trace = profile_to_trace(profile, int(timestamp * 1_000_000_000), roots)
    writer = PerfettoWriter()
    for obj in emit_trace(trace):
        writer.add(obj)
    writer.write(out)
    logger.info("Wrote %s", out)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Transform a callgrind profile to a perfetto trace."
    )
    parser.add_argument("filename", type=str, help="The filename of the profile")
    parser.add_argument(
        "-o",
        "--out",
        type=str,
        help="The output filename (Perfetto trace)",
        default="out.perfetto-trace",
    )
    parser.add_argument(
        "--timestamp",
        type=float,
        help="Unix timestamp (seconds) at which the root starts; defaults to now",
        default=None,
    )
    parser.add_argument(
        "--root",
        type=str,
        help="Only lay out the call tree of this function; a function that is "
        "called elsewhere spans the cost of all its calls",
        default=None,
    )
    parser.add_argument(
        "--identity",
        choices=IDENTITY_POLICIES,
        help="Identify functions by name only, or by object, file and name",
        default="name",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Print debug information"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    timestamp = args.timestamp if args.timestamp is not None else time.time()
    try:
        run(args.filename, args.out, timestamp, args.root, args.identity)
    except (OSError, ValueError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
