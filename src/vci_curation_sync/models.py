from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class WorkflowKind(str, Enum):
    APPROVE = "approve"
    EXTRACT = "extract"


@dataclass(frozen=True)
class Record:
    """
    One variant interpretation as listed in the portal.

    `locator` is the href of the record's detail page; it is only meaningful inside the browser session
    that produced the catalog.
    """

    identifier: str
    locator: str


@dataclass(frozen=True)
class FieldSelection:
    selector: str
    # May contain `{approver}`-style placeholders, resolved from the run context.
    value: str
    kind: Literal["select", "type"] = "select"

    def resolve(self, context: dict[str, str]) -> str:
        return self.value.format(**context)


@dataclass(frozen=True)
class WorkflowStep:
    name: str
    trigger_label: Optional[str] = None
    await_label: Optional[str] = None
    diagnostic_name: Optional[str] = None
    field_selections: tuple[FieldSelection, ...] = ()
    # CSS alternatives for controls that have no usable label.
    trigger_selector: Optional[str] = None
    await_selector: Optional[str] = None


class ExtractionResult(BaseModel):
    identifier: str
    header: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)

    def aggregate_row(self) -> str:
        cells = [c for row in self.rows for c in row]
        return "\t".join(_clean_cell(c) for c in cells)

    def to_tsv(self) -> str:
        lines = []
        if self.header:
            lines.append("\t".join(_clean_cell(c) for c in self.header))
        for row in self.rows:
            lines.append("\t".join(_clean_cell(c) for c in row))
        return "\n".join(lines) + "\n"

    @staticmethod
    def error_row(identifier: str) -> str:
        return f"ERROR: {identifier}"


def _clean_cell(value: str) -> str:
    # Tabs/newlines inside a cell would break the one-row-per-record layout.
    return " ".join((value or "").split())


@dataclass(frozen=True)
class ReconciliationResult:
    work_order: list[str]
    external_only: list[str] = field(default_factory=list)
    catalog_only: list[str] = field(default_factory=list)

    @property
    def has_mismatch(self) -> bool:
        return bool(self.external_only or self.catalog_only)


OutcomeStatus = Literal["succeeded", "failed", "dry_run"]


class RecordOutcome(BaseModel):
    identifier: str
    status: OutcomeStatus
    error: Optional[str] = None


class RunSummary(BaseModel):
    kind: WorkflowKind
    dry_run: bool = False
    outcomes: list[RecordOutcome] = Field(default_factory=list)
    # Catalog records filtered out by the external list.
    skipped: list[str] = Field(default_factory=list)
    # External identifiers that the catalog does not contain.
    missing: list[str] = Field(default_factory=list)
    aggregate_path: Optional[str] = None

    def _ids(self, status: OutcomeStatus) -> list[str]:
        return [o.identifier for o in self.outcomes if o.status == status]

    @property
    def succeeded(self) -> list[str]:
        return self._ids("succeeded")

    @property
    def failed(self) -> list[str]:
        return self._ids("failed")

    @property
    def planned(self) -> list[str]:
        return self._ids("dry_run")

    @property
    def ok(self) -> bool:
        return not self.failed
