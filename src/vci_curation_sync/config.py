from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Literal
from typing import Union

import yaml
from pydantic import BaseModel, Field, model_validator


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")
_DOMAIN_RE = re.compile(r"^[a-z0-9.-]+$")

DOMAIN_TEST = "curation-test.clinicalgenome.org"
DOMAIN_PROD = "curation.clinicalgenome.org"


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _split_list_env(value: str) -> list[str]:
    s = (value or "").strip()
    if not s:
        return []
    # Approver names contain spaces, so only commas/semicolons separate entries.
    if s.startswith("["):
        try:
            data = json.loads(s)
            if isinstance(data, list):
                return [str(x).strip() for x in data if str(x).strip()]
        except ValueError:
            pass
    return [item.strip() for item in re.split(r"[,;]", s) if item.strip()]


def _default_config_from_env() -> dict:
    """
    Env-only defaults so a `.env` file is enough for most runs; YAML is an optional override.
    """
    return {
        "portal": {
            "environment": os.getenv("VCI_ENVIRONMENT", "test"),
            "headless": not _env_bool("VCI_HEADFUL", default=False),
            "slow_mo_ms": _env_int("VCI_SLOWMO_MS", 0),
        },
        "affiliation": {
            "affiliation_id": os.getenv("VCI_AFFILIATION_ID", ""),
            "affiliation_fullname": os.getenv("VCI_AFFILIATION_FULLNAME", ""),
            "approvers": _split_list_env(os.getenv("VCI_APPROVERS", "")),
        },
        "timing": {
            "settle_ms": _env_int("VCI_SETTLE_MS", 7000),
        },
        "output": {
            "snapshot_dir": os.getenv("VCI_SNAPSHOT_DIR", "variants"),
            "results_dir": os.getenv("VCI_RESULTS_DIR", "data/results"),
            "debug_dir": os.getenv("VCI_DEBUG_DIR", "data/debug"),
        },
        "reconcile": {
            "strict": _env_bool("VCI_STRICT_RECONCILE", default=False),
            "variant_column": os.getenv("VCI_VARIANT_COLUMN", "Variant"),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", "data/curation.log"),
        },
    }


class DomainConfig(BaseModel):
    """
    Per-environment differences between the VCI test and production portals.

    The login link has no id; its position in the header differs between the two deployments.
    """

    domain: str
    login_button_selector: str

    @model_validator(mode="after")
    def _validate_domain(self) -> "DomainConfig":
        domain = (self.domain or "").strip().lower().rstrip("/")
        if domain.startswith("https://"):
            domain = domain[len("https://"):]
        if not domain or not _DOMAIN_RE.match(domain):
            raise ValueError(f"portal domain must be a bare host name like {DOMAIN_TEST!r} (got: {self.domain!r})")
        self.domain = domain
        return self


def _default_domains() -> dict[str, DomainConfig]:
    return {
        "test": DomainConfig(domain=DOMAIN_TEST, login_button_selector=".link~ .link+ .link span"),
        "prod": DomainConfig(domain=DOMAIN_PROD, login_button_selector=".link+ .link span"),
    }


class PortalConfig(BaseModel):
    environment: Literal["test", "prod"] = "test"
    domains: dict[str, DomainConfig] = Field(default_factory=_default_domains)
    headless: bool = True
    slow_mo_ms: int = 0

    @model_validator(mode="after")
    def _fill_missing_domains(self) -> "PortalConfig":
        # A YAML override of one environment must not drop the other.
        merged = _default_domains()
        merged.update(self.domains)
        self.domains = merged
        return self

    @property
    def active(self) -> DomainConfig:
        return self.domains[self.environment]

    @property
    def base_url(self) -> str:
        return f"https://{self.active.domain}"


class AffiliationConfig(BaseModel):
    """
    Values for the `affiliation` cookie. Setting it up-front skips the interactive affiliation picker.
    """

    affiliation_id: str = ""
    affiliation_fullname: str = ""
    approvers: list[str] = Field(default_factory=list)

    @property
    def approver(self) -> str:
        return self.approvers[0] if self.approvers else ""

    def cookie_value(self) -> str:
        return json.dumps(
            {
                "affiliation_id": self.affiliation_id,
                "affiliation_fullname": self.affiliation_fullname,
                "approver": list(self.approvers),
            },
            separators=(",", ":"),
        )


class TimingConfig(BaseModel):
    # The VCI renders record pages asynchronously with no ready signal; this fixed wait precedes step 1.
    settle_ms: int = Field(default=7000, ge=0)
    ready_timeout_ms: int = Field(default=30_000, gt=0)
    control_retries: int = Field(default=5, ge=1)
    control_retry_interval_ms: int = Field(default=1000, ge=0)
    # Large affiliations take a long time to render the interpretation list after login.
    catalog_timeout_ms: int = Field(default=40_000, gt=0)
    login_timeout_ms: int = Field(default=30_000, gt=0)
    results_retries: int = Field(default=10, ge=1)


class OutputConfig(BaseModel):
    snapshot_dir: str = "variants"
    results_dir: str = "data/results"
    debug_dir: str = "data/debug"


class ReconcileConfig(BaseModel):
    strict: bool = False
    variant_column: str = "Variant"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = "data/curation.log"


class AppConfig(BaseModel):
    portal: PortalConfig = PortalConfig()
    affiliation: AffiliationConfig = AffiliationConfig()
    timing: TimingConfig = TimingConfig()
    output: OutputConfig = OutputConfig()
    reconcile: ReconcileConfig = ReconcileConfig()
    logging: LoggingConfig = LoggingConfig()


class Credentials(BaseModel):
    username: str
    password: str = Field(repr=False)

    @model_validator(mode="after")
    def _require_values(self) -> "Credentials":
        if not self.username.strip() or not self.password:
            raise ValueError("VCI credentials require both username and password")
        return self


def load_config(path: Union[str, Path]) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)


def load_credentials(path: Union[str, Path]) -> Credentials:
    """
    Read `{"username": ..., "password": ...}` from a JSON file; VCI_USERNAME / VCI_PASSWORD fill any gaps.
    """
    p = Path(path)
    data: dict = {}
    if p.exists():
        loaded = json.loads(p.read_text(encoding="utf-8") or "{}")
        if not isinstance(loaded, dict):
            raise ValueError(f"Credentials file must contain a JSON object: {p}")
        data = loaded

    return Credentials(
        username=str(data.get("username") or os.getenv("VCI_USERNAME", "")),
        password=str(data.get("password") or os.getenv("VCI_PASSWORD", "")),
    )
