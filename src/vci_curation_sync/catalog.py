from __future__ import annotations

import logging
from typing import Iterable, Optional

from .models import Record
from .portal.driver import PageDriver
from .portal.selectors import PortalSelectors


logger = logging.getLogger(__name__)


class RecordCatalog:
    """
    Reads the affiliated interpretation list on the (already loaded) dashboard.
    """

    def __init__(self, driver: PageDriver, *, selectors: Optional[PortalSelectors] = None) -> None:
        self.driver = driver
        self.selectors = selectors or PortalSelectors()

    def list(self, filter_statuses: Iterable[str]) -> dict[str, Record]:
        """
        Return `{identifier: Record}` for every row whose status label is in `filter_statuses`.

        Rows without a status label or record link are skipped. Identifiers are unique in the portal, so a
        repeated identifier replaces the earlier entry.
        """
        wanted = {s.strip() for s in filter_statuses}
        sel = self.selectors
        rows = self.driver.read_rows(
            sel.interpretation_rows,
            {
                "status": (sel.row_status_label, "innerText"),
                "name": (sel.row_record_link, "innerText"),
                "href": (sel.row_record_link, "href"),
            },
        )

        records: dict[str, Record] = {}
        for row in rows:
            status = (row.get("status") or "").strip()
            if not status or status not in wanted:
                continue
            name = (row.get("name") or "").strip()
            href = (row.get("href") or "").strip()
            if not name or not href:
                logger.debug("Skipping %s row without a record link.", status)
                continue
            if name in records:
                logger.debug("Duplicate identifier %r in interpretation list; keeping the later row.", name)
                # Re-insert so iteration order reflects the row that won.
                del records[name]
            records[name] = Record(identifier=name, locator=href)

        logger.info(
            "Catalog: %d of %d rows match statuses=%s", len(records), len(rows), ",".join(sorted(wanted))
        )
        return records
