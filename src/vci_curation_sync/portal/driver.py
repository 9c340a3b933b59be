from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Protocol, Union

from playwright.sync_api import ElementHandle, Error as PlaywrightError, Page

from ..errors import PageDriverError


logger = logging.getLogger(__name__)

# (selector relative to the row, DOM property to read)
FieldSpec = tuple[str, str]


class Control(Protocol):
    def text(self) -> Optional[str]: ...

    def value(self) -> Optional[str]: ...

    def click(self) -> None: ...


class PageDriver(Protocol):
    """
    Browser capabilities used by the catalog and the step sequencer.

    Implementations raise `PageDriverError` for failed browser calls so callers never depend on the
    automation library's exception types.
    """

    def goto(self, url: str) -> None: ...

    def wait_ms(self, ms: int) -> None: ...

    def wait_for(self, selector: str, *, visible: bool = False, timeout_ms: int = 30_000) -> None: ...

    def exists(self, selector: str) -> bool: ...

    def controls(self, selector: str) -> list[Control]: ...

    def click(self, selector: str) -> None: ...

    def type_text(self, selector: str, text: str) -> None: ...

    def select_option(self, selector: str, value: str) -> None: ...

    def screenshot(self, path: Union[str, Path]) -> None: ...

    def read_rows(self, row_selector: str, fields: dict[str, FieldSpec]) -> list[dict[str, Optional[str]]]: ...

    def table_cells(self, table_selector: str) -> list[list[str]]: ...

    def add_cookie(self, *, name: str, value: str, domain: str, path: str = "/") -> None: ...

    def click_and_wait_for_navigation(self, selector: str, *, timeout_ms: int = 30_000) -> None: ...


@contextmanager
def _driver_errors(action: str) -> Iterator[None]:
    try:
        yield
    except PlaywrightError as e:
        raise PageDriverError(f"{action} failed: {e}") from e


def _read_property(handle: ElementHandle, name: str) -> Optional[str]:
    value = handle.get_property(name).json_value()
    if value is None:
        return None
    return str(value)


class PlaywrightControl:
    def __init__(self, handle: ElementHandle) -> None:
        self._handle = handle

    def text(self) -> Optional[str]:
        with _driver_errors("read control innerText"):
            return _read_property(self._handle, "innerText")

    def value(self) -> Optional[str]:
        with _driver_errors("read control value"):
            return _read_property(self._handle, "value")

    def click(self) -> None:
        with _driver_errors("click control"):
            self._handle.click()


_TABLE_CELLS_JS = """
rows => rows.map(r => Array.from(r.querySelectorAll('th, td')).map(c => (c.innerText || '').trim()))
"""


class PlaywrightPageDriver:
    """
    PageDriver backed by a Playwright sync `Page`.
    """

    def __init__(self, page: Page) -> None:
        self.page = page

    @property
    def url(self) -> str:
        return getattr(self.page, "url", "")

    def goto(self, url: str) -> None:
        with _driver_errors(f"goto {url}"):
            self.page.goto(url, wait_until="domcontentloaded")

    def wait_ms(self, ms: int) -> None:
        if ms <= 0:
            return
        with _driver_errors(f"wait {ms}ms"):
            self.page.wait_for_timeout(ms)

    def wait_for(self, selector: str, *, visible: bool = False, timeout_ms: int = 30_000) -> None:
        with _driver_errors(f"wait for {selector!r}"):
            self.page.wait_for_selector(selector, state="visible" if visible else "attached", timeout=timeout_ms)

    def exists(self, selector: str) -> bool:
        with _driver_errors(f"query {selector!r}"):
            return self.page.query_selector(selector) is not None

    def controls(self, selector: str) -> list[Control]:
        with _driver_errors(f"query {selector!r}"):
            return [PlaywrightControl(h) for h in self.page.query_selector_all(selector)]

    def click(self, selector: str) -> None:
        with _driver_errors(f"click {selector!r}"):
            self.page.click(selector)

    def type_text(self, selector: str, text: str) -> None:
        with _driver_errors(f"type into {selector!r}"):
            self.page.locator(selector).first.fill(text)

    def select_option(self, selector: str, value: str) -> None:
        with _driver_errors(f"select {value!r} in {selector!r}"):
            # A plain string matches either the option value or its label.
            self.page.locator(selector).first.select_option(value)

    def screenshot(self, path: Union[str, Path]) -> None:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        with _driver_errors(f"screenshot {p}"):
            self.page.screenshot(path=str(p), full_page=True)

    def read_rows(self, row_selector: str, fields: dict[str, FieldSpec]) -> list[dict[str, Optional[str]]]:
        out: list[dict[str, Optional[str]]] = []
        with _driver_errors(f"read rows {row_selector!r}"):
            for row in self.page.query_selector_all(row_selector):
                values: dict[str, Optional[str]] = {}
                for name, (selector, prop) in fields.items():
                    el = row.query_selector(selector)
                    values[name] = _read_property(el, prop) if el is not None else None
                out.append(values)
        return out

    def table_cells(self, table_selector: str) -> list[list[str]]:
        with _driver_errors(f"read table {table_selector!r}"):
            return self.page.eval_on_selector_all(f"{table_selector} tr", _TABLE_CELLS_JS)

    def add_cookie(self, *, name: str, value: str, domain: str, path: str = "/") -> None:
        with _driver_errors(f"set cookie {name!r}"):
            self.page.context.add_cookies(
                [
                    {
                        "name": name,
                        "value": value,
                        "domain": domain,
                        "path": path,
                        "httpOnly": False,
                        "secure": False,
                    }
                ]
            )

    def click_and_wait_for_navigation(self, selector: str, *, timeout_ms: int = 30_000) -> None:
        with _driver_errors(f"click {selector!r} and wait for navigation"):
            with self.page.expect_navigation(wait_until="domcontentloaded", timeout=timeout_ms):
                self.page.click(selector)

    def save_debug(self, *, debug_dir: Union[str, Path], name_prefix: str) -> None:
        """
        Best-effort capture of screenshot + HTML + body text for offline debugging.
        """
        try:
            out_dir = Path(debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            self.page.screenshot(path=str(out_dir / f"{name_prefix}.png"), full_page=True)
            (out_dir / f"{name_prefix}.html").write_text(self.page.content(), encoding="utf-8")
            try:
                (out_dir / f"{name_prefix}.txt").write_text(self.page.inner_text("body"), encoding="utf-8")
            except PlaywrightError:
                pass
        except (PlaywrightError, OSError):
            logger.debug("Failed to save debug artifacts.", exc_info=True)
