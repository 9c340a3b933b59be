from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Mapping, Optional, Sequence, Union

from .errors import WorkflowError
from .models import ExtractionResult, Record, RecordOutcome, ReconciliationResult, RunSummary, WorkflowKind
from .sequencer import StepSequencer
from .util.paths import run_stamp, safe_name
from .workflows import APPROVE_WORKFLOW, EXTRACT_WORKFLOW


logger = logging.getLogger(__name__)


class AggregateSink:
    """
    Append-only tab-delimited file collecting one row per attempted record for the whole run.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.rows_written = 0
        self._fh: Optional[IO[str]] = None

    @classmethod
    def for_run(cls, results_dir: Union[str, Path], *, stamp: Optional[str] = None) -> "AggregateSink":
        return cls(Path(results_dir) / f"clinvar_{stamp or run_stamp()}.tsv")

    def open(self) -> "AggregateSink":
        if self._fh is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = self.path.open("a", encoding="utf-8", newline="")
        return self

    def append(self, row: str) -> None:
        if self._fh is None:
            raise RuntimeError(f"Aggregate file is not open: {self.path}")
        self._fh.write(row.rstrip("\n") + "\n")
        # Flush per row so a crash mid-batch keeps everything written so far.
        self._fh.flush()
        self.rows_written += 1

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def __enter__(self) -> "AggregateSink":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class BatchRunner:
    """
    Processes the reconciled work list one record at a time.

    A WorkflowError for one record is logged and recorded; the next record is still attempted.
    """

    def __init__(
        self,
        sequencer: StepSequencer,
        *,
        dry_run: bool = False,
        sink: Optional[AggregateSink] = None,
        results_dir: str = "data/results",
    ) -> None:
        self.sequencer = sequencer
        self.dry_run = dry_run
        self.sink = sink
        self.results_dir = Path(results_dir)

    def run(
        self,
        work_items: Sequence[str],
        catalog: Mapping[str, Record],
        kind: WorkflowKind,
        *,
        reconciliation: Optional[ReconciliationResult] = None,
    ) -> RunSummary:
        summary = RunSummary(kind=kind, dry_run=self.dry_run)
        if reconciliation is not None:
            summary.skipped = list(reconciliation.catalog_only)
            summary.missing = list(reconciliation.external_only)
        if self.sink is not None:
            summary.aggregate_path = str(self.sink.path)

        total = len(work_items)
        for index, ident in enumerate(work_items, start=1):
            record = catalog.get(ident)
            if record is None:
                logger.error("Record %r is not in the current catalog; skipping.", ident)
                summary.outcomes.append(RecordOutcome(identifier=ident, status="failed", error="not in catalog"))
                continue

            if self.dry_run:
                logger.info("[dry-run] Would %s record %d/%d: %s", kind.value, index, total, ident)
                summary.outcomes.append(RecordOutcome(identifier=ident, status="dry_run"))
                continue

            logger.info("Handling record %d/%d: %s", index, total, ident)
            try:
                if kind is WorkflowKind.APPROVE:
                    self.sequencer.run(APPROVE_WORKFLOW, record)
                else:
                    self._extract_one(record)
            except WorkflowError as e:
                logger.error("Record failed (record=%s): %s", ident, e)
                summary.outcomes.append(RecordOutcome(identifier=ident, status="failed", error=str(e)))
                continue

            summary.outcomes.append(RecordOutcome(identifier=ident, status="succeeded"))

        return summary

    def _extract_one(self, record: Record) -> None:
        row = ExtractionResult.error_row(record.identifier)
        try:
            result = self.sequencer.extract(record, EXTRACT_WORKFLOW)
            row = result.aggregate_row()
            self._write_result_file(result)
        finally:
            # Exactly one aggregate row per attempted record, whatever happened above.
            if self.sink is not None:
                self.sink.append(row)

    def _write_result_file(self, result: ExtractionResult) -> Path:
        self.results_dir.mkdir(parents=True, exist_ok=True)
        path = self.results_dir / f"{safe_name(result.identifier)}.tsv"
        path.write_text(result.to_tsv(), encoding="utf-8")
        logger.info("Wrote %s", path)
        return path
