from __future__ import annotations

import logging
from pathlib import Path

import pytest

from conftest import SEL, FakeVciDriver

from vci_curation_sync.config import TimingConfig
from vci_curation_sync.models import Record, ReconciliationResult, WorkflowKind
from vci_curation_sync.runner import AggregateSink, BatchRunner
from vci_curation_sync.sequencer import StepSequencer


TABLE_HEADER = ["Variant", "Interpretation"]


def _catalog(*names: str) -> dict[str, Record]:
    return {n: Record(identifier=n, locator=f"https://vci/{n}") for n in names}


def _sequencer(driver: FakeVciDriver, timing: TimingConfig, tmp_path: Path) -> StepSequencer:
    return StepSequencer(
        driver, timing=timing, snapshot_dir=str(tmp_path / "variants"), context={"approver": "Jane Doe"}
    )


def _read_lines(path: Path) -> list[str]:
    return path.read_text(encoding="utf-8").splitlines()


def test_failure_of_one_record_does_not_stop_the_batch(
    driver: FakeVciDriver, fast_timing: TimingConfig, tmp_path: Path
) -> None:
    catalog = _catalog("A", "B", "C")
    driver.blocked["https://vci/B"] = {"Preview Provisional"}

    runner = BatchRunner(_sequencer(driver, fast_timing, tmp_path))
    summary = runner.run(["A", "B", "C"], catalog, WorkflowKind.APPROVE)

    gotos = [arg for name, arg in driver.calls if name == "goto"]
    assert gotos == ["https://vci/A", "https://vci/B", "https://vci/C"]
    assert summary.succeeded == ["A", "C"]
    assert summary.failed == ["B"]
    assert not summary.ok
    failed = [o for o in summary.outcomes if o.status == "failed"]
    assert "Preview Provisional" in (failed[0].error or "")


def test_records_processed_in_work_order(driver: FakeVciDriver, fast_timing: TimingConfig, tmp_path: Path) -> None:
    runner = BatchRunner(_sequencer(driver, fast_timing, tmp_path))
    summary = runner.run(["C", "A"], _catalog("A", "B", "C"), WorkflowKind.APPROVE)
    assert [o.identifier for o in summary.outcomes] == ["C", "A"]
    assert summary.ok


def test_dry_run_performs_no_ui_mutations(
    driver: FakeVciDriver, fast_timing: TimingConfig, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO)
    runner = BatchRunner(_sequencer(driver, fast_timing, tmp_path), dry_run=True)
    summary = runner.run(["A", "B"], _catalog("A", "B"), WorkflowKind.APPROVE)

    assert driver.calls == []
    assert driver.mutation_count == 0
    assert summary.planned == ["A", "B"]
    assert summary.succeeded == []
    assert "A" in caplog.text and "B" in caplog.text
    assert "[dry-run]" in caplog.text


def test_identifier_missing_from_catalog_is_failed(
    driver: FakeVciDriver, fast_timing: TimingConfig, tmp_path: Path
) -> None:
    runner = BatchRunner(_sequencer(driver, fast_timing, tmp_path))
    summary = runner.run(["Z", "A"], _catalog("A"), WorkflowKind.APPROVE)
    assert summary.failed == ["Z"]
    assert summary.succeeded == ["A"]


def test_extract_error_sentinel_when_table_never_populates(
    driver: FakeVciDriver, fast_timing: TimingConfig, tmp_path: Path
) -> None:
    driver.blocked["https://vci/B"] = {SEL.results_table}
    sink_path = tmp_path / "results" / "clinvar_test.tsv"

    with AggregateSink(sink_path) as sink:
        runner = BatchRunner(_sequencer(driver, fast_timing, tmp_path), sink=sink, results_dir=str(tmp_path / "results"))
        summary = runner.run(["B"], _catalog("B"), WorkflowKind.EXTRACT)

    assert _read_lines(sink_path) == ["ERROR: B"]
    assert summary.failed == ["B"]
    assert summary.aggregate_path == str(sink_path)


def test_extract_aggregate_has_one_row_per_attempted_record(
    driver: FakeVciDriver, fast_timing: TimingConfig, tmp_path: Path
) -> None:
    results_dir = tmp_path / "results"
    driver.tables["https://vci/A"] = [TABLE_HEADER, ["A", "Pathogenic"]]
    driver.tables["https://vci/B"] = [TABLE_HEADER]
    driver.tables["https://vci/C"] = [TABLE_HEADER, ["C", "Benign"]]

    with AggregateSink.for_run(results_dir, stamp="20260101_000000") as sink:
        runner = BatchRunner(_sequencer(driver, fast_timing, tmp_path), sink=sink, results_dir=str(results_dir))
        summary = runner.run(["A", "B", "C"], _catalog("A", "B", "C"), WorkflowKind.EXTRACT)

    assert sink.path.name == "clinvar_20260101_000000.tsv"
    assert _read_lines(sink.path) == ["A\tPathogenic", "ERROR: B", "C\tBenign"]
    assert sink.rows_written == 3
    assert summary.succeeded == ["A", "C"]
    assert summary.failed == ["B"]

    # Per-record result files only for successful extractions.
    assert _read_lines(results_dir / "A.tsv") == ["Variant\tInterpretation", "A\tPathogenic"]
    assert not (results_dir / "B.tsv").exists()


def test_extract_unexpected_error_still_writes_sentinel(
    driver: FakeVciDriver, fast_timing: TimingConfig, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    seq = _sequencer(driver, fast_timing, tmp_path)

    def _boom(record, workflow=None):
        raise RuntimeError("browser crashed")

    monkeypatch.setattr(seq, "extract", _boom)
    sink_path = tmp_path / "agg.tsv"
    with AggregateSink(sink_path) as sink:
        runner = BatchRunner(seq, sink=sink, results_dir=str(tmp_path / "results"))
        with pytest.raises(RuntimeError):
            runner.run(["A", "B"], _catalog("A", "B"), WorkflowKind.EXTRACT)

    # Non-workflow errors abort the batch, but the attempted record still got its row.
    assert _read_lines(sink_path) == ["ERROR: A"]


def test_summary_carries_reconciliation_differences(
    driver: FakeVciDriver, fast_timing: TimingConfig, tmp_path: Path
) -> None:
    reconciliation = ReconciliationResult(work_order=["A"], external_only=["D"], catalog_only=["C"])
    runner = BatchRunner(_sequencer(driver, fast_timing, tmp_path), dry_run=True)
    summary = runner.run(reconciliation.work_order, _catalog("A", "C"), WorkflowKind.APPROVE, reconciliation=reconciliation)
    assert summary.skipped == ["C"]
    assert summary.missing == ["D"]


def test_aggregate_sink_appends_and_requires_open(tmp_path: Path) -> None:
    path = tmp_path / "out" / "agg.tsv"
    sink = AggregateSink(path)
    with pytest.raises(RuntimeError):
        sink.append("x")

    with sink:
        sink.append("first")
    with AggregateSink(path) as again:
        again.append("second\n")

    assert _read_lines(path) == ["first", "second"]
