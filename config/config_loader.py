"""Load settings.yaml into typed dataclasses. Resolves API keys and headers from the environment."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

TIERS = ("fast", "slow")


@dataclass
class GatewayConfig:
    api_key_env: str
    base_url: str | None
    app_url: str
    app_title: str

    def headers(self) -> dict[str, str]:
        """Headers identifying the calling application to the hosted API."""
        return {"HTTP-Referer": self.app_url, "X-Title": self.app_title}


@dataclass
class TierConfig:
    name: str              # "fast" or "slow"
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class PromptsConfig:
    system: str
    badges: str
    badges_request: str
    reject: str
    accept: str
    focus: str
    structured: str


@dataclass
class DefaultsConfig:
    badge_mode: str = "llm"
    swipe_threshold: int = 80
    prefetch_variants: int = 0
    badge_max_tokens: int = 50
    badge_temperature: float = 0.7
    structured_max_tokens: int = 2048
    fallback_badges: list[str] = field(
        default_factory=lambda: ["More Info", "Related Topics", "Deep Dive"]
    )


@dataclass
class AppConfig:
    gateway: GatewayConfig
    tiers: dict[str, TierConfig]
    prompts: PromptsConfig
    defaults: DefaultsConfig
    available_tiers: set[str] = field(default_factory=set)


def _load_gateway(raw: dict) -> GatewayConfig:
    base_url = raw.get("base_url")
    override_env = raw.get("base_url_env")
    if override_env:
        override = os.environ.get(override_env, "").strip()
        if override:
            logger.info("Base URL overridden by %s", override_env)
            base_url = override

    app_url = raw.get("default_app_url", "http://localhost:3000")
    app_url_env = raw.get("app_url_env")
    if app_url_env:
        app_url = os.environ.get(app_url_env, "").strip() or app_url

    return GatewayConfig(
        api_key_env=str(raw["api_key_env"]),
        base_url=base_url,
        app_url=app_url,
        app_title=str(raw.get("app_title", "LLM Cards")),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if a tier is
    not configured. Missing API keys are logged, not raised; callers check
    available_tiers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    gateway = _load_gateway(raw["gateway"])

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        system=prompts_raw["system"].strip(),
        badges=prompts_raw["badges"].strip(),
        badges_request=prompts_raw["badges_request"],
        reject=prompts_raw["reject"],
        accept=prompts_raw["accept"],
        focus=prompts_raw["focus"],
        structured=prompts_raw["structured"],
    )

    defaults_raw = raw.get("defaults") or {}
    defaults = DefaultsConfig(
        badge_mode=str(defaults_raw.get("badge_mode", "llm")),
        swipe_threshold=int(defaults_raw.get("swipe_threshold", 80)),
        prefetch_variants=int(defaults_raw.get("prefetch_variants", 0)),
        badge_max_tokens=int(defaults_raw.get("badge_max_tokens", 50)),
        badge_temperature=float(defaults_raw.get("badge_temperature", 0.7)),
        structured_max_tokens=int(defaults_raw.get("structured_max_tokens", 2048)),
    )
    if "fallback_badges" in defaults_raw:
        defaults.fallback_badges = [str(b) for b in defaults_raw["fallback_badges"]]
    if defaults.badge_mode not in ("llm", "heuristic"):
        raise ValueError(f"Unknown badge_mode: {defaults.badge_mode}")

    tiers: dict[str, TierConfig] = {}
    available_tiers: set[str] = set()

    for tier_name in TIERS:
        if tier_name not in raw["tiers"]:
            raise ValueError(f"Tier '{tier_name}' missing from settings")
        tier_raw = raw["tiers"][tier_name]
        api_key_env = tier_raw.get("api_key_env", gateway.api_key_env)
        tier_cfg = TierConfig(
            name=tier_name,
            sdk=tier_raw["sdk"],
            model=tier_raw["model"],
            api_key_env=api_key_env,
            timeout_sec=int(tier_raw["timeout_sec"]),
            max_tokens=int(tier_raw["max_tokens"]),
            base_url=tier_raw["base_url"] if "base_url" in tier_raw else gateway.base_url,
        )
        tiers[tier_name] = tier_cfg

        if os.environ.get(api_key_env, "").strip():
            available_tiers.add(tier_name)
            logger.info("Tier available: %s -> %s", tier_name, tier_cfg.model)
        else:
            logger.info(
                "Tier skipped (no API key): %s - set %s in .env",
                tier_name,
                api_key_env,
            )

    return AppConfig(
        gateway=gateway,
        tiers=tiers,
        prompts=prompts,
        defaults=defaults,
        available_tiers=available_tiers,
    )
