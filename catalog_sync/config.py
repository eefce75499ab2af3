import os
from dataclasses import dataclass
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_API_VERSION = "2024-10"


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class StoreConfig:
    domain: str
    token: str
    api_version: str = DEFAULT_API_VERSION
    timeout: float = 20.0
    row_delay: float = 0.3
    product_row_delay: float = 0.5
    image_delay: float = 0.3
    link_settle: float = 0.4
    report_dir: str = "reports"
    report_tz: Optional[str] = None


def _ms(env: Mapping[str, str], name: str, default: int) -> float:
    raw = env.get(name)
    if raw in (None, ""):
        return default / 1000.0
    try:
        ms = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer number of milliseconds, got {raw!r}") from e
    if ms < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}")
    return ms / 1000.0


def _tz(env: Mapping[str, str]) -> Optional[str]:
    name = (env.get("REPORT_TZ") or "").strip()
    if not name:
        return None
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"REPORT_TZ is not a known time zone: {name!r}") from e
    return name


def load_config(env: Optional[Mapping[str, str]] = None) -> StoreConfig:
    """Build the store config from the environment (or the given mapping)."""
    env = os.environ if env is None else env

    domain = (env.get("SHOPIFY_STORE") or "").strip()
    token = (env.get("SHOPIFY_TOKEN") or "").strip()
    if not domain or not token:
        raise ConfigError("Missing SHOPIFY_STORE or SHOPIFY_TOKEN in environment")

    try:
        timeout = float(env.get("REQUEST_TIMEOUT") or 20)
    except ValueError as e:
        raise ConfigError(f"REQUEST_TIMEOUT must be a number, got {env.get('REQUEST_TIMEOUT')!r}") from e

    return StoreConfig(
        domain=domain,
        token=token,
        api_version=(env.get("SHOPIFY_API_VERSION") or DEFAULT_API_VERSION).strip(),
        timeout=timeout,
        row_delay=_ms(env, "ROW_DELAY_MS", 300),
        product_row_delay=_ms(env, "PRODUCT_ROW_DELAY_MS", 500),
        image_delay=_ms(env, "IMAGE_DELAY_MS", 300),
        link_settle=_ms(env, "LINK_SETTLE_MS", 400),
        report_dir=env.get("REPORT_DIR") or "reports",
        report_tz=_tz(env),
    )
