from .paths import run_stamp, safe_name

__all__ = ["run_stamp", "safe_name"]
