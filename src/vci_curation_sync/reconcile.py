from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

from .errors import ReconciliationMismatchError
from .models import Record, ReconciliationResult


logger = logging.getLogger(__name__)


def reconcile(
    catalog: Mapping[str, Record],
    external: Optional[Iterable[str]],
    *,
    strict: bool = False,
) -> ReconciliationResult:
    """
    Decide which catalog records to process.

    - No external list: every catalog identifier, in catalog order.
    - External list: identifiers present in both, in external-list order. Identifiers only in one of the
      two lists are reported (logged) but do not stop the run unless `strict` is set.
    """
    if external is None:
        return ReconciliationResult(work_order=list(catalog.keys()))

    ordered_external: list[str] = []
    seen: set[str] = set()
    for ident in external:
        if ident in seen:
            continue
        ordered_external.append(ident)
        seen.add(ident)

    catalog_keys = set(catalog.keys())
    work_order = [i for i in ordered_external if i in catalog_keys]
    external_only = sorted(seen - catalog_keys)
    catalog_only = sorted(catalog_keys - seen)

    if external_only:
        logger.warning(
            "%d record(s) in the variant file are not in the portal list (wrong status or name?): %s",
            len(external_only),
            "; ".join(external_only),
        )
    if catalog_only:
        logger.warning(
            "%d portal record(s) are not in the variant file and will be skipped: %s",
            len(catalog_only),
            "; ".join(catalog_only),
        )

    result = ReconciliationResult(work_order=work_order, external_only=external_only, catalog_only=catalog_only)
    if strict and result.has_mismatch:
        raise ReconciliationMismatchError(external_only=external_only, catalog_only=catalog_only)
    return result
