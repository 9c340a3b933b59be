from __future__ import annotations

import zipfile
from pathlib import Path

from .paths import run_stamp


def _add_file(z: zipfile.ZipFile, file_path: Path, arcname: str) -> None:
    try:
        if file_path.is_file():
            z.write(file_path, arcname=arcname)
    except OSError:
        # best-effort; a capture may disappear while we bundle
        return


def _add_tree(z: zipfile.ZipFile, root: Path, prefix: str) -> None:
    if not root.is_dir():
        return
    for p in sorted(root.rglob("*")):
        if p.is_file():
            _add_file(z, p, arcname=str(Path(prefix) / p.relative_to(root)))


def create_debug_bundle(
    *,
    debug_dir: str,
    log_file: str,
    out_dir: str = "data",
    environment: str = "",
) -> Path:
    """
    Zip the login debug captures (screenshot, HTML, body text) and the run log into one shareable file.

    Credentials files and `.env` are never included.
    """
    out_root = Path(out_dir)
    out_root.mkdir(parents=True, exist_ok=True)

    env_part = f"_{environment.strip().lower()}" if (environment or "").strip() else ""
    out_path = out_root / f"debug_bundle{env_part}_{run_stamp()}.zip"

    log = Path(log_file)
    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        _add_file(z, log, arcname=log.name)
        _add_tree(z, Path(debug_dir), "debug")

    return out_path
