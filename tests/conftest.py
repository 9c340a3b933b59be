from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Optional, Union

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from vci_curation_sync.config import TimingConfig  # noqa: E402
from vci_curation_sync.errors import PageDriverError  # noqa: E402
from vci_curation_sync.portal.selectors import PortalSelectors  # noqa: E402


def pytest_configure(config: Any) -> None:
    config.addinivalue_line(
        "markers",
        "portal: integration smoke tests that require real VCI credentials",
    )


SEL = PortalSelectors()

# What becomes visible on a record page after each trigger (label or selector) is invoked.
VCI_TRANSITIONS: dict[str, list[str]] = {
    SEL.view_summary: ["Save", "ClinVar Submission Data"],
    "Save": ["Preview Provisional"],
    "Preview Provisional": ["Submit Provisional "],
    "Submit Provisional ": ["Preview Approval"],
    "Preview Approval": ["Submit Approval "],
    "Submit Approval ": ["ClinVar Submission Data"],
    "ClinVar Submission Data": ["Generate"],
    "Generate": [SEL.results_table],
}

# <input type="submit"> buttons: label only in `value`.
VALUE_LABELS = {"Submit Provisional ", "Submit Approval "}

MUTATIONS = {"click", "click_control", "type_text", "select_option", "click_and_wait_for_navigation"}


class FakeControl:
    def __init__(self, driver: "FakeVciDriver", label: str) -> None:
        self.driver = driver
        self.label = label

    def text(self) -> Optional[str]:
        return "" if self.label in VALUE_LABELS else self.label

    def value(self) -> Optional[str]:
        return self.label if self.label in VALUE_LABELS else None

    def click(self) -> None:
        self.driver._record("click_control", self.label)
        self.driver._reveal(self.label)


class FakeVciDriver:
    """
    In-memory stand-in for the VCI record pages.

    `blocked[url]` lists labels/selectors that never appear on that page; `tables[url]` is what the
    results table contains once generated.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.rows: list[dict[str, Optional[str]]] = []
        self.blocked: dict[str, set[str]] = {}
        self.tables: dict[str, list[list[str]]] = {}
        self.fail_goto: set[str] = set()
        self.cookies: list[dict[str, str]] = []
        self.typed: dict[str, str] = {}
        self.selected: dict[str, str] = {}
        self.screenshots: list[Path] = []
        self.url = ""
        self._visible: list[str] = []

    # helpers
    def _record(self, name: str, arg: Any = None) -> None:
        self.calls.append((name, arg))

    def _reveal(self, trigger: str) -> None:
        for item in VCI_TRANSITIONS.get(trigger, []):
            if item in self.blocked.get(self.url, set()):
                continue
            if item not in self._visible:
                self._visible.append(item)

    @property
    def mutation_count(self) -> int:
        return sum(1 for name, _ in self.calls if name in MUTATIONS)

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def clicked_labels(self) -> list[str]:
        return [arg for name, arg in self.calls if name in ("click_control", "click")]

    # PageDriver
    def goto(self, url: str) -> None:
        self._record("goto", url)
        if url in self.fail_goto:
            raise PageDriverError(f"goto {url} failed: net::ERR_ABORTED")
        self.url = url
        self._visible = [] if SEL.view_summary in self.blocked.get(url, set()) else [SEL.view_summary]

    def wait_ms(self, ms: int) -> None:
        self._record("wait_ms", ms)

    def wait_for(self, selector: str, *, visible: bool = False, timeout_ms: int = 30_000) -> None:
        self._record("wait_for", selector)
        if not self.exists(selector):
            raise PageDriverError(f"wait for {selector!r} failed: Timeout {timeout_ms}ms exceeded.")

    def exists(self, selector: str) -> bool:
        return selector in self._visible

    def controls(self, selector: str) -> list[FakeControl]:
        self._record("controls", selector)
        return [FakeControl(self, label) for label in self._visible if not label.startswith(".")]

    def click(self, selector: str) -> None:
        self._record("click", selector)
        self._reveal(selector)

    def type_text(self, selector: str, text: str) -> None:
        self._record("type_text", selector)
        self.typed[selector] = text

    def select_option(self, selector: str, value: str) -> None:
        self._record("select_option", selector)
        self.selected[selector] = value

    def screenshot(self, path: Union[str, Path]) -> None:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(b"png")
        self.screenshots.append(p)

    def read_rows(self, row_selector: str, fields: dict[str, tuple[str, str]]) -> list[dict[str, Optional[str]]]:
        self._record("read_rows", row_selector)
        return [{name: row.get(name) for name in fields} for row in self.rows]

    def table_cells(self, table_selector: str) -> list[list[str]]:
        self._record("table_cells", table_selector)
        if not self.exists(table_selector):
            raise PageDriverError(f"read table {table_selector!r} failed: no such element")
        return self.tables.get(self.url, [])

    def add_cookie(self, *, name: str, value: str, domain: str, path: str = "/") -> None:
        self._record("add_cookie", name)
        self.cookies.append({"name": name, "value": value, "domain": domain, "path": path})

    def click_and_wait_for_navigation(self, selector: str, *, timeout_ms: int = 30_000) -> None:
        self._record("click_and_wait_for_navigation", selector)


def catalog_row(name: str, status: Optional[str], href: Optional[str] = None) -> dict[str, Optional[str]]:
    return {
        "status": status,
        "name": name,
        "href": href if href is not None else f"https://curation-test.clinicalgenome.org/variant-central/?edit=true&variant={name}",
    }


@pytest.fixture
def driver() -> FakeVciDriver:
    return FakeVciDriver()


@pytest.fixture
def fast_timing() -> TimingConfig:
    return TimingConfig(settle_ms=7000, control_retries=3, control_retry_interval_ms=10, results_retries=2)
