"""ABOUTME: Device fingerprinting and persistent installation ids
ABOUTME: Derives a stable SHA-256 fingerprint from user agent, locale and hardware attributes"""

import hashlib
import json
import locale
import os
import platform
import uuid
from dataclasses import dataclass
from typing import Any

from tzlocal import get_localzone_name
from user_agents import parse as parse_user_agent

from subdash import __version__
from subdash.adapters.storage import KeyValueStorage

DEVICE_ID_KEY = "device_id"

UNKNOWN_FAMILY = "Other"


def _local_zone_name() -> str:
    # the IANA name, never the abbreviation, which flips between CET and CEST
    try:
        return get_localzone_name() or ""
    except (KeyError, ValueError, OSError):
        return ""


@dataclass(frozen=True, slots=True)
class DeviceEnvironment:
    """The ambient attributes a client can observe about the machine it runs on."""

    user_agent: str = ""
    language: str = ""
    screen_width: int = 0
    screen_height: int = 0
    timezone: str = ""
    cookie_enabled: bool = False
    hardware_concurrency: int = 0

    @classmethod
    def from_host(cls) -> "DeviceEnvironment":
        """Describe the machine the command line client is running on."""
        user_agent = (
            f"subdash-cli/{__version__} ({platform.system()} {platform.release()}; {platform.machine()}) "
            f"Python/{platform.python_version()}"
        )
        language, _encoding = locale.getlocale()
        return cls(
            user_agent=user_agent,
            language=(language or "").replace("_", "-"),
            timezone=_local_zone_name(),
            cookie_enabled=True,
            hardware_concurrency=os.cpu_count() or 0,
        )


@dataclass(frozen=True, slots=True)
class DeviceInfo:
    browser: str
    os: str
    platform: str

    @property
    def display_name(self) -> str:
        return f"{self.browser} on {self.os}"


def _platform_type(user_agent: Any) -> str:
    if user_agent.is_bot:
        return "bot"
    if user_agent.is_tablet:
        return "tablet"
    if user_agent.is_mobile:
        return "mobile"
    if user_agent.is_pc:
        return "desktop"
    return ""


def _product_token(user_agent: str) -> str:
    return user_agent.split("/", 1)[0].strip() if "/" in user_agent else ""


def _describe(env: DeviceEnvironment) -> dict[str, Any]:
    parsed = parse_user_agent(env.user_agent or "")
    return {
        "browser": parsed.browser.family,
        "browserVersion": parsed.browser.version_string,
        "os": parsed.os.family,
        "osVersion": parsed.os.version_string,
        "platform": _platform_type(parsed),
    }


def generate_fingerprint(env: DeviceEnvironment) -> str:
    """Hash the environment into a stable device fingerprint.

    Deliberately unsalted: the same device has to produce the same value on every
    visit. Missing attributes hash as empty values, which weakens uniqueness but
    never fails.
    """
    device_data = _describe(env)
    device_data.update(
        userAgent=env.user_agent or "",
        language=env.language or "",
        screenResolution=f"{env.screen_width or 0}x{env.screen_height or 0}",
        timezone=env.timezone or "",
        cookieEnabled=bool(env.cookie_enabled),
        hardwareConcurrency=env.hardware_concurrency or 0,
    )
    canonical = json.dumps(device_data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def get_device_info(env: DeviceEnvironment) -> DeviceInfo:
    """Human readable browser/os/platform, used to name device rows."""
    described = _describe(env)
    browser = described["browser"]
    if browser == UNKNOWN_FAMILY:
        browser = _product_token(env.user_agent) or "Unknown browser"
    os_name = described["os"]
    if os_name == UNKNOWN_FAMILY:
        os_name = "Unknown OS"
    return DeviceInfo(browser=browser, os=os_name, platform=described["platform"] or "unknown")


def get_or_create_device_id(storage: KeyValueStorage) -> str:
    """Installation id kept in local storage. Not a security boundary."""
    device_id = storage.get_item(DEVICE_ID_KEY)
    if not device_id:
        device_id = str(uuid.uuid4())
        storage.set_item(DEVICE_ID_KEY, device_id)
    return device_id
