from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from .config import TimingConfig
from .errors import ControlNotFoundError, ExtractionFailure, PageDriverError, StepFailedError
from .models import ExtractionResult, FieldSelection, Record, WorkflowStep
from .portal.driver import Control, PageDriver
from .portal.selectors import PortalSelectors
from .util.paths import safe_name
from .workflows import EXTRACT_WORKFLOW


logger = logging.getLogger(__name__)


class StepSequencer:
    """
    Drives one record's detail page through an ordered table of WorkflowSteps.

    Every step: fill fields, invoke the trigger control, wait for the next control to appear, snapshot.
    A step only starts once the previous one has seen its await control; if that never shows up within
    the retry budget the record is aborted with ControlNotFoundError.
    """

    def __init__(
        self,
        driver: PageDriver,
        *,
        timing: Optional[TimingConfig] = None,
        snapshot_dir: str = "variants",
        selectors: Optional[PortalSelectors] = None,
        context: Optional[dict[str, str]] = None,
    ) -> None:
        self.driver = driver
        self.timing = timing or TimingConfig()
        self.snapshot_dir = Path(snapshot_dir)
        self.selectors = selectors or PortalSelectors()
        self.context = dict(context or {})

    def record_dir(self, record: Record) -> Path:
        return self.snapshot_dir / safe_name(record.identifier)

    def run(self, workflow: Sequence[WorkflowStep], record: Record) -> None:
        record_dir = self.record_dir(record)
        self._open(record)
        for index, step in enumerate(workflow, start=1):
            logger.info("Step %02d/%02d %s (record=%s)", index, len(workflow), step.name, record.identifier)
            self._run_step(step, record, record_dir)
        logger.info("Workflow complete (record=%s steps=%d)", record.identifier, len(workflow))

    def extract(self, record: Record, workflow: Sequence[WorkflowStep] = EXTRACT_WORKFLOW) -> ExtractionResult:
        """
        Run the data-generation workflow, then read every cell of the generated results table.

        The first table row is the header; at least one data row is required.
        """
        ident = record.identifier
        table_selector = self.selectors.results_table
        try:
            self.run(workflow, record)
        except ControlNotFoundError as e:
            if e.label != table_selector:
                raise
            raise ExtractionFailure(
                f"Results table never appeared after {e.attempts} attempts", identifier=ident
            ) from e

        # The table element is rendered before its rows are filled in.
        attempts = self.timing.results_retries
        rows: list[list[str]] = []
        try:
            for attempt in range(1, attempts + 1):
                table = self.driver.table_cells(table_selector)
                rows = [row for row in table if any((c or "").strip() for c in row)]
                if len(rows) >= 2:
                    return ExtractionResult(identifier=ident, header=rows[0], rows=rows[1:])
                logger.debug("Try %d/%d: results table has no data rows yet.", attempt, attempts)
                if attempt < attempts:
                    self.driver.wait_ms(self.timing.control_retry_interval_ms)
        except PageDriverError as e:
            raise ExtractionFailure(f"Could not read results table: {e}", identifier=ident) from e

        raise ExtractionFailure(
            f"Results table has no data rows after {attempts} attempts (rows={len(rows)})", identifier=ident
        )

    def find_control(self, label: str) -> Optional[Control]:
        # The VCI is inconsistent about where a button's label lives: innerText for <button>, value for
        # <input type="submit">. Check both, in that order; the first matching control wins.
        for control in self.driver.controls(self.selectors.action_controls):
            if control.text() == label:
                return control
            if control.value() == label:
                return control
        return None

    def wait_for_control(self, label: str, *, identifier: Optional[str] = None) -> Control:
        attempts = self.timing.control_retries
        for attempt in range(1, attempts + 1):
            control = self.find_control(label)
            if control is not None:
                return control
            logger.debug("Try %d/%d: control %r not found yet.", attempt, attempts, label)
            if attempt < attempts:
                self.driver.wait_ms(self.timing.control_retry_interval_ms)
        raise ControlNotFoundError(label, identifier=identifier, attempts=attempts)

    def wait_for_selector(self, selector: str, *, identifier: Optional[str] = None) -> None:
        attempts = self.timing.results_retries
        for attempt in range(1, attempts + 1):
            if self.driver.exists(selector):
                return
            logger.debug("Try %d/%d: %r not present yet.", attempt, attempts, selector)
            if attempt < attempts:
                self.driver.wait_ms(self.timing.control_retry_interval_ms)
        raise ControlNotFoundError(selector, identifier=identifier, attempts=attempts)

    def _open(self, record: Record) -> None:
        try:
            self.driver.goto(record.locator)
            # No programmatic ready signal: wait a fixed time, then for the summary tab to exist.
            self.driver.wait_ms(self.timing.settle_ms)
        except PageDriverError as e:
            raise StepFailedError("open", e, identifier=record.identifier) from e

        try:
            self.driver.wait_for(self.selectors.view_summary, timeout_ms=self.timing.ready_timeout_ms)
        except PageDriverError as e:
            raise ControlNotFoundError(self.selectors.view_summary, identifier=record.identifier, attempts=1) from e

    def _apply_field(self, field: FieldSelection) -> None:
        value = field.resolve(self.context)
        if field.kind == "type":
            self.driver.type_text(field.selector, value)
        else:
            self.driver.select_option(field.selector, value)

    def _run_step(self, step: WorkflowStep, record: Record, record_dir: Path) -> None:
        ident = record.identifier
        try:
            for field in step.field_selections:
                self._apply_field(field)

            if step.trigger_selector:
                self.driver.click(step.trigger_selector)
            elif step.trigger_label:
                self.wait_for_control(step.trigger_label, identifier=ident).click()

            if step.await_label:
                self.wait_for_control(step.await_label, identifier=ident)
            elif step.await_selector:
                self.wait_for_selector(step.await_selector, identifier=ident)
        except PageDriverError as e:
            raise StepFailedError(step.name, e, identifier=ident) from e
        finally:
            # Captured on failure too: the snapshot shows what the page looked like when the step gave up.
            if step.diagnostic_name:
                self._snapshot(record_dir, step.diagnostic_name)

    def _snapshot(self, record_dir: Path, name: str) -> None:
        try:
            self.driver.screenshot(record_dir / f"{name}.png")
        except PageDriverError:
            logger.debug("Failed to save step screenshot (name=%s).", name, exc_info=True)
