from __future__ import annotations

import argparse
import logging
import os
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from .catalog import RecordCatalog
from .config import AppConfig, load_config, load_credentials
from .errors import PageDriverError, ReconciliationMismatchError, SessionError
from .logging_config import configure_logging
from .models import RunSummary, WorkflowKind
from .portal.driver import PageDriver
from .portal.session import PortalSession
from .reconcile import reconcile
from .records_file import read_record_identifiers
from .runner import AggregateSink, BatchRunner
from .sequencer import StepSequencer
from .util.debug_bundle import create_debug_bundle
from .workflows import STATUS_FILTERS


logger = logging.getLogger("vci_curation_sync")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="vci_curation_sync")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    common.add_argument(
        "--credentials",
        default="credentials.json",
        help='JSON file with {"username": ..., "password": ...} (default: credentials.json)',
    )
    common.add_argument(
        "--variant-file",
        "-v",
        default="",
        help="CSV of variants to process (header row required). Without it, every listed variant is processed.",
    )
    common.add_argument(
        "--variant-column",
        default="",
        help="CSV column holding the variant name (default: reconcile.variant_column, 'Variant').",
    )
    common.add_argument("--dry-run", action="store_true", help="Log which variants would be handled; change nothing")
    common.add_argument("--prod", action="store_true", help="Run against the production VCI (default: test)")
    common.add_argument(
        "--strict",
        action="store_true",
        help="Fail before processing if the variant file and the portal list disagree.",
    )
    common.add_argument("--headful", action="store_true", help="Run browser headful (debug)")
    common.add_argument("--slowmo-ms", type=int, default=None, help="Playwright slow motion in milliseconds (debug).")

    sub = p.add_subparsers(dest="cmd", required=True)
    sub.add_parser(
        WorkflowKind.APPROVE.value,
        parents=[common],
        help="Move IN PROGRESS / PROVISIONAL interpretations through provisional and final approval",
    )
    sub.add_parser(
        WorkflowKind.EXTRACT.value,
        parents=[common],
        aliases=["clinvar"],
        help="Generate ClinVar submission data for APPROVED interpretations and collect it into a TSV",
    )
    return p


def _apply_cli_overrides(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    portal = cfg.portal
    if args.prod:
        portal = portal.model_copy(update={"environment": "prod"})
    if args.headful:
        portal = portal.model_copy(update={"headless": False})
    if args.slowmo_ms is not None:
        portal = portal.model_copy(update={"slow_mo_ms": int(args.slowmo_ms)})

    reconcile_cfg = cfg.reconcile
    if args.strict:
        reconcile_cfg = reconcile_cfg.model_copy(update={"strict": True})
    if args.variant_column:
        reconcile_cfg = reconcile_cfg.model_copy(update={"variant_column": args.variant_column})

    return cfg.model_copy(update={"portal": portal, "reconcile": reconcile_cfg})


def _kind_from_cmd(cmd: str) -> WorkflowKind:
    return WorkflowKind.APPROVE if cmd == WorkflowKind.APPROVE.value else WorkflowKind.EXTRACT


def run_batch(
    cfg: AppConfig,
    driver: PageDriver,
    *,
    kind: WorkflowKind,
    external: Optional[List[str]],
    dry_run: bool,
) -> RunSummary:
    """
    Catalog -> reconcile -> process, on an already logged-in page.
    """
    try:
        catalog = RecordCatalog(driver).list(STATUS_FILTERS[kind])
    except PageDriverError as e:
        raise SessionError(f"Could not read the interpretation list: {e}") from e

    reconciliation = reconcile(catalog, external, strict=cfg.reconcile.strict)
    logger.info("Work list: %d record(s)", len(reconciliation.work_order))

    sequencer = StepSequencer(
        driver,
        timing=cfg.timing,
        snapshot_dir=cfg.output.snapshot_dir,
        context={"approver": cfg.affiliation.approver},
    )

    if kind is WorkflowKind.EXTRACT and not dry_run:
        with AggregateSink.for_run(cfg.output.results_dir) as sink:
            runner = BatchRunner(sequencer, sink=sink, results_dir=cfg.output.results_dir)
            return runner.run(reconciliation.work_order, catalog, kind, reconciliation=reconciliation)

    runner = BatchRunner(sequencer, dry_run=dry_run, results_dir=cfg.output.results_dir)
    return runner.run(reconciliation.work_order, catalog, kind, reconciliation=reconciliation)


def _print_summary(summary: RunSummary) -> None:
    def _section(title: str, items: List[str]) -> None:
        print(f"{title} ({len(items)}):")
        for item in items:
            print(f"- {item}")

    print(f"Run summary: {summary.kind.value}{' (dry-run)' if summary.dry_run else ''}")
    if summary.dry_run:
        _section("Would process", summary.planned)
    else:
        _section("Succeeded", summary.succeeded)
        _section("Failed", summary.failed)
    _section("Skipped (not in variant file)", summary.skipped)
    _section("Not found in portal", summary.missing)
    if summary.aggregate_path:
        print(f"Aggregate file: {summary.aggregate_path}")


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    cfg = _apply_cli_overrides(load_config(args.config), args)
    configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path)

    kind = _kind_from_cmd(args.cmd)
    if kind is WorkflowKind.APPROVE and not args.dry_run and not cfg.affiliation.approver:
        raise SystemExit("The approve workflow needs an approver name. Set VCI_APPROVERS or affiliation.approvers.")

    try:
        creds = load_credentials(args.credentials)
    except (ValidationError, ValueError) as e:
        raise SystemExit(f"Could not load VCI credentials from {args.credentials}: {e}")

    external: Optional[List[str]] = None
    if args.variant_file:
        try:
            external = read_record_identifiers(args.variant_file, column=cfg.reconcile.variant_column)
        except (OSError, ValueError) as e:
            raise SystemExit(f"Could not read variant file {args.variant_file}: {e}")
        logger.info("Variant file lists %d record(s)", len(external))

    logger.info(
        "Starting %s (environment=%s dry_run=%s strict=%s)",
        kind.value,
        cfg.portal.environment,
        args.dry_run,
        cfg.reconcile.strict,
    )
    t0 = time.time()
    try:
        with PortalSession(
            portal=cfg.portal,
            creds=creds,
            affiliation=cfg.affiliation,
            timing=cfg.timing,
            debug_dir=cfg.output.debug_dir,
        ) as driver:
            summary = run_batch(cfg, driver, kind=kind, external=external, dry_run=args.dry_run)
    except (SessionError, ReconciliationMismatchError):
        logger.error("Run aborted (seconds=%.2f)", time.time() - t0)
        try:
            bundle = create_debug_bundle(
                debug_dir=cfg.output.debug_dir,
                log_file=cfg.logging.file_path or "data/curation.log",
                out_dir="data",
                environment=cfg.portal.environment,
            )
            logger.error("Wrote debug bundle: %s", bundle)
        except OSError:
            logger.debug("Failed to create debug bundle.", exc_info=True)
        raise

    logger.info(
        "Run finished (ok=%s succeeded=%d failed=%d seconds=%.2f)",
        str(summary.ok).lower(),
        len(summary.succeeded),
        len(summary.failed),
        time.time() - t0,
    )
    _print_summary(summary)
    return 0 if summary.ok else 1
