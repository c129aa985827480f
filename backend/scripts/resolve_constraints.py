"""
Resolve constraint conflicts from the command line.

Reads constraints (a bare list or {"constraints": [...]}) from a file or
stdin and prints the resolver output as JSON on stdout.

Usage: python scripts/resolve_constraints.py [constraints.json | -]
Default input: $EW_CACHE_DIR/constraints.json
Exit code 1 when the input is missing or malformed.
"""
import json
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from ewrouter.core.config import get_settings
from ewrouter.core.logging import configure_logging, get_logger
from ewrouter.services.constraints.resolver import resolve_json

logger = get_logger(__name__)


def read_input(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    with open(source, "r", encoding="utf-8") as f:
        return f.read()


def main(source: str) -> int:
    try:
        text = read_input(source)
    except OSError as e:
        logger.error("constraints_file_unreadable", path=source, error=str(e))
        print(json.dumps({"error": f"No constraints file found: {source}"}, indent=2))
        return 1

    output = resolve_json(text)
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 1 if "error" in output else 0


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Resolve conflicts among domain constraints")
    parser.add_argument(
        "source",
        nargs="?",
        default=None,
        help="Constraints JSON file, or '-' for stdin (default: <cache dir>/constraints.json)",
    )
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "WARNING"))

    args = parser.parse_args()
    configure_logging(log_level=args.log_level, json_output=False)

    source = args.source or str(get_settings().cache_dir / "constraints.json")
    sys.exit(main(source))
