"""
Classify a query from the command line.

Prints the classification as JSON on stdout; logs go to stderr.

Usage: python scripts/classify_query.py "design a login system" [--cache-dir DIR]
"""
import json
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from ewrouter.core.config import get_settings, reset_settings
from ewrouter.core.logging import configure_logging, get_logger
from ewrouter.services.classification.classifier import QueryClassifier

logger = get_logger(__name__)


def main(query: str) -> int:
    classifier = QueryClassifier.from_settings(get_settings())
    result = classifier.classify(query)
    print(json.dumps(result.model_dump(), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Classify an engineering query")
    parser.add_argument("query", nargs="+", help="Query text")
    parser.add_argument(
        "--cache-dir",
        default=None,
        help="Directory for pattern cache and session history (default: EW_CACHE_DIR)",
    )
    parser.add_argument(
        "--no-progressive",
        action="store_true",
        help="Disable session boosting and transition tracking",
    )
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "WARNING"))

    args = parser.parse_args()

    if args.cache_dir:
        os.environ["EW_CACHE_DIR"] = args.cache_dir
    if args.no_progressive:
        os.environ["EW_PROGRESSIVE_CLASSIFICATION"] = "0"
    reset_settings()

    configure_logging(log_level=args.log_level, json_output=False)
    sys.exit(main(" ".join(args.query)))
