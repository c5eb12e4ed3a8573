"""
Classify a JSON file of evidence inputs as one batch and print the results.

The file holds a JSON array of records {"type": ..., "data": ..., "metadata": ...}
(a single object is treated as a one-item batch). Output is the batch result
as JSON on stdout: per-input results in file order plus the summary. Findings
that need manual review are handed to the escalation sinks before exit; logs
go to stderr.

Usage:
  python -m backend_daff.tools.classify_inputs inputs.json
  python -m backend_daff.tools.classify_inputs inputs.json --output results.json --concurrency 4
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from backend_daff.alerts.escalation import (
    EscalationDispatcher,
    QueueEscalationNotifier,
    log_escalation_sink,
)
from backend_daff.analysis_engine.classifier import build_analyzer
from backend_daff.analysis_engine.models import AnalysisInput
from backend_daff.config import get_settings
from backend_daff.core.exceptions import ConfigurationError, InvalidInputError
from backend_daff.daff_logging import get_logger

logger = get_logger(__name__)

DRAIN_TIMEOUT_SEC = 5.0


def load_inputs(path: Path) -> list[AnalysisInput]:
    """Parse the input file. Raises InvalidInputError naming the bad record."""
    try:
        raw: Any = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise InvalidInputError(f"cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"{path} is not valid JSON: {e}") from e
    records = raw if isinstance(raw, list) else [raw]
    inputs = []
    for i, record in enumerate(records):
        try:
            inputs.append(AnalysisInput.from_dict(record))
        except InvalidInputError as e:
            raise InvalidInputError(f"record {i}: {e}") from e
    return inputs


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Classify evidence inputs from a JSON file (+ safe, - malicious, = investigate).",
    )
    parser.add_argument("path", type=Path, help="JSON file with an array of input records")
    parser.add_argument("--output", type=Path, default=None, help="Write results here instead of stdout")
    parser.add_argument("--concurrency", type=int, default=None, help="Batch worker threads (default: BATCH_CONCURRENCY)")
    args = parser.parse_args(argv)

    try:
        inputs = load_inputs(args.path)
        settings = get_settings()
        if args.concurrency is not None:
            settings = replace(settings, batch_concurrency=max(1, args.concurrency))
        notifier = QueueEscalationNotifier(settings.escalation_queue_size)
        analyzer = build_analyzer(settings, escalation=notifier)
    except (InvalidInputError, ConfigurationError) as e:
        logger.error("classify_inputs_failed", path=str(args.path), error=str(e))
        print("ERROR:", e, file=sys.stderr)
        return 1

    dispatcher = EscalationDispatcher(notifier, (log_escalation_sink,))
    dispatcher.start()
    try:
        batch = analyzer.classify_batch(inputs)
    finally:
        # drains every queued escalation before returning
        dispatcher.stop(DRAIN_TIMEOUT_SEC)

    text = json.dumps(batch.to_dict(), indent=2)
    if args.output is not None:
        args.output.write_text(text + "\n", encoding="utf-8")
        print("OUTPUT:", args.output)
    else:
        print(text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
