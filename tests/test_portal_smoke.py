from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]


def _skip_or_fail(reason: str) -> None:
    # Portal smoke tests need real VCI credentials and should not fail local unit test runs by default.
    # To force failures (e.g. in a dedicated integration run), set REQUIRE_PORTAL_TESTS=1.
    if os.getenv("REQUIRE_PORTAL_TESTS") == "1":
        pytest.fail(reason)
    pytest.skip(reason)


def _run_dry_run(command: str) -> None:
    creds = Path(os.getenv("VCI_CREDENTIALS_FILE", str(ROOT / "credentials.json")))
    if not creds.exists() and not (os.getenv("VCI_USERNAME") and os.getenv("VCI_PASSWORD")):
        _skip_or_fail(f"No VCI credentials ({creds} missing and VCI_USERNAME/VCI_PASSWORD unset).")

    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT / "src"), env.get("PYTHONPATH", "")]))
    timeout = int(os.getenv("PORTAL_SMOKE_TIMEOUT", "600"))
    subprocess.run(
        [sys.executable, "-m", "vci_curation_sync", command, "--dry-run", "--credentials", str(creds)],
        cwd=ROOT,
        env=env,
        check=True,
        timeout=timeout,
    )


@pytest.mark.portal
def test_approve_dry_run_against_test_portal() -> None:
    _run_dry_run("approve")


@pytest.mark.portal
def test_extract_dry_run_against_test_portal() -> None:
    _run_dry_run("extract")
