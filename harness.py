#!/usr/bin/env python3
"""harness.py

Runs one batch document through the resolver and prints the outcome as JSON.

The document holds the UTXO pool snapshot and the proposed transactions; all
hashes, owner keys and signatures are hex strings, amounts are decimal
strings:

```json
{
  "pool": [{"txid": "ab..", "utxo_index": 0, "amount": "10", "owner": "02.."}],
  "transactions": [
    {"inputs": [{"txid": "ab..", "utxo_index": 0, "signature": "3045.."}],
     "outputs": [{"amount": "10", "owner": "03.."}]}
  ],
  "strategy": "fee"
}
```

Usage examples
--------------
```bash
python harness.py batch.json
python harness.py batch.json --strategy maximal --selection first --log-level DEBUG
```"""
from __future__ import annotations

import argparse
import json
import sys

from pydantic import ValidationError

from config.config import (
    DEFAULT_SELECTION,
    DEFAULT_STRATEGY,
    LOG_LEVEL,
    SELECTION_POLICIES,
    STRATEGIES,
    STRUCTURED_LOGGING,
)
from errors.exceptions import PoolInvariantViolation
from log_utils import setup_logging
from mempool import BatchResolver
from models.batch import BatchRequest

EXIT_BAD_DOCUMENT = 1
EXIT_POOL_INVARIANT = 2


def load_request(path: str) -> BatchRequest:
    with open(path, "r", encoding="utf-8") as f:
        return BatchRequest.model_validate_json(f.read())


def run(request: BatchRequest, strategy: str | None = None, selection: str | None = None) -> dict:
    resolver = BatchResolver(
        request.to_pool(),
        strategy=strategy or request.strategy or DEFAULT_STRATEGY,
        selection=selection or request.selection or DEFAULT_SELECTION,
    )
    return resolver.handle_transactions(request.to_batch()).to_dict()


# -------------------------------------------------------------------------------
# CLI entry-point
# -------------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    parser.add_argument("batch", help="Batch document (JSON)")
    parser.add_argument("--strategy", choices=STRATEGIES, help="Override the document's strategy")
    parser.add_argument("--selection", choices=SELECTION_POLICIES, help="Maximal set selection policy")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Logging level")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--plain-logs", action="store_true", help="Plain text instead of JSON logs")
    args = parser.parse_args(argv)

    logger = setup_logging(
        level=args.log_level,
        log_file=args.log_file,
        enable_console=True,
        enable_structured=STRUCTURED_LOGGING and not args.plain_logs,
    )

    try:
        request = load_request(args.batch)
    except (OSError, ValidationError) as e:
        logger.error(f"Cannot load batch document {args.batch}: {e}")
        return EXIT_BAD_DOCUMENT

    try:
        result = run(request, args.strategy, args.selection)
    except PoolInvariantViolation as e:
        logger.critical(f"Fatal: {e.message}")
        return EXIT_POOL_INVARIANT

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
