from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

# Resource types Playwright reports on ``Request.resource_type``.
KNOWN_RESOURCE_TYPES = frozenset(
    {
        "document",
        "stylesheet",
        "image",
        "media",
        "font",
        "script",
        "texttrack",
        "xhr",
        "fetch",
        "eventsource",
        "websocket",
        "manifest",
        "other",
    }
)
DEFAULT_BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "font"})

# Chromium flags emitted when the matching capability is switched off.
_DISABLED_CAPABILITY_FLAGS: dict[str, tuple[str, ...]] = {
    "sandbox": ("--no-sandbox", "--disable-setuid-sandbox", "--no-zygote"),
    "gpu": ("--disable-gpu", "--disable-accelerated-2d-canvas"),
    "shared_memory": ("--disable-dev-shm-usage",),
    "telemetry": (
        "--disable-background-networking",
        "--disable-client-side-phishing-detection",
        "--disable-component-extensions-with-background-pages",
        "--disable-default-apps",
        "--disable-domain-reliability",
        "--disable-sync",
        "--no-default-browser-check",
        "--no-first-run",
        "--no-pings",
    ),
    "background_throttling": (
        "--disable-background-timer-throttling",
        "--disable-backgrounding-occluded-windows",
        "--disable-renderer-backgrounding",
        "--disable-ipc-flooding-protection",
        "--disable-hang-monitor",
    ),
    "extensions": ("--disable-extensions", "--disable-plugins"),
    "audio": ("--mute-audio",),
}


class BrowserLaunchError(RuntimeError):
    pass


class LaunchConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    headless: bool = True
    sandbox: bool = False
    gpu: bool = False
    shared_memory: bool = False
    telemetry: bool = False
    background_throttling: bool = False
    extensions: bool = False
    audio: bool = False
    extra_args: tuple[str, ...] = ()
    viewport_width: int = Field(default=1920, ge=320)
    viewport_height: int = Field(default=1080, ge=240)
    user_agent: str = DEFAULT_USER_AGENT
    blocked_resource_types: frozenset[str] = DEFAULT_BLOCKED_RESOURCE_TYPES

    @field_validator("extra_args")
    @classmethod
    def _validate_extra_args(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(arg.strip() for arg in value if arg.strip())
        bad = [arg for arg in cleaned if not arg.startswith("--")]
        if bad:
            raise ValueError(f"browser extra args must start with '--': {', '.join(bad)}")
        return cleaned

    @field_validator("blocked_resource_types")
    @classmethod
    def _validate_blocked_types(cls, value: frozenset[str]) -> frozenset[str]:
        unknown = sorted(value - KNOWN_RESOURCE_TYPES)
        if unknown:
            raise ValueError(f"unknown resource types: {', '.join(unknown)}")
        if "document" in value:
            raise ValueError("document requests cannot be blocked")
        return value

    def chromium_args(self) -> tuple[str, ...]:
        args: list[str] = []
        for capability, flags in _DISABLED_CAPABILITY_FLAGS.items():
            if not getattr(self, capability):
                args.extend(flags)
        args.extend(self.extra_args)
        return tuple(dict.fromkeys(args))

    @property
    def viewport(self) -> dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}


def make_route_handler(blocked: frozenset[str]):
    def _handle(route: Any) -> None:
        if route.request.resource_type in blocked:
            route.abort()
        else:
            route.continue_()

    return _handle


class BrowserSession(AbstractContextManager["BrowserSession"]):
    def __init__(self, config: LaunchConfig):
        self.config = config
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None

    @property
    def is_open(self) -> bool:
        return self._browser is not None

    def start(self) -> None:
        from playwright.sync_api import sync_playwright

        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.config.headless,
                args=list(self.config.chromium_args()),
            )
            self._context = self._browser.new_context(
                user_agent=self.config.user_agent,
                viewport=self.config.viewport,
            )
        except Exception as exc:
            self.close()
            raise BrowserLaunchError(f"browser launch failed: {exc}") from exc
        logger.info("Browser launched (headless=%s)", self.config.headless)

    def new_page(self) -> Any:
        if self._context is None:
            raise BrowserLaunchError("browser session is not started")
        page = self._context.new_page()
        if self.config.blocked_resource_types:
            page.route("**/*", make_route_handler(self.config.blocked_resource_types))
        return page

    def close(self) -> None:
        for name, target, method in (
            ("context", self._context, "close"),
            ("browser", self._browser, "close"),
            ("playwright", self._playwright, "stop"),
        ):
            if target is None:
                continue
            try:
                getattr(target, method)()
            except Exception as exc:
                logger.warning("Failed to close %s: %s", name, exc)
        was_open = self._browser is not None
        self._context = None
        self._browser = None
        self._playwright = None
        if was_open:
            logger.info("Browser closed")

    def __enter__(self) -> BrowserSession:
        self.start()
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()
