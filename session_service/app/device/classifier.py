from __future__ import annotations

import re
from collections.abc import Mapping

from ..models.session_record import DeviceInfo, DeviceType, Platform


PLATFORM_HEADER = "x-platform"

_MOBILE_RE = re.compile(r"mobile|android|iphone|ipod|blackberry|iemobile|opera mini")
_TABLET_RE = re.compile(r"ipad|tablet|kindle|silk|playbook")
_DESKTOP_RE = re.compile(r"windows|macintosh|linux|chrome|safari|firefox|edge|opera")
_IOS_VERSION_RE = re.compile(r"os (\d+)[_.](\d+)")
_ANDROID_VERSION_RE = re.compile(r"android (\d+\.?\d*)")
_SAMSUNG_RE = re.compile(r"sm-([a-z0-9]+)")
_PIXEL_RE = re.compile(r"pixel\s*(\d+[a-z]*)")
_MACOS_RE = re.compile(r"mac os x 10[._](\d+)")

_WINDOWS_VERSIONS: tuple[tuple[str, str], ...] = (
    ("windows nt 10", "Windows 10"),
    ("windows nt 11", "Windows 11"),
    ("windows nt 6.3", "Windows 8.1"),
    ("windows nt 6.2", "Windows 8"),
    ("windows nt 6.1", "Windows 7"),
)


def classify_device(
    headers: Mapping[str, str],
    client_host: str | None = None,
) -> DeviceInfo:
    """요청 헤더에서 플랫폼/디바이스 정보를 추출한다.

    - 플랫폼은 X-Platform 헤더(web|app)로 결정하며, 없거나 잘못된 값이면 web 이다.
    - 디바이스 이름/타입은 User-Agent 기반의 best-effort 값이다.
    """

    lowered = {key.lower(): value for key, value in headers.items()}
    user_agent = lowered.get("user-agent") or "Unknown"

    return DeviceInfo(
        platform=extract_platform(lowered.get(PLATFORM_HEADER)),
        name=device_name(user_agent),
        type=device_type(user_agent),
        user_agent=user_agent,
        ip_address=_extract_ip_address(lowered, client_host),
    )


def extract_platform(header_value: str | None) -> Platform:
    value = (header_value or "").strip().lower()
    if value == Platform.APP.value:
        return Platform.APP
    return Platform.WEB


def device_type(user_agent: str) -> DeviceType:
    ua = user_agent.lower()
    if _MOBILE_RE.search(ua):
        return DeviceType.MOBILE
    if _TABLET_RE.search(ua):
        return DeviceType.TABLET
    if _DESKTOP_RE.search(ua):
        return DeviceType.WEB
    return DeviceType.UNKNOWN


def device_name(user_agent: str) -> str:
    """사람이 읽을 수 있는 디바이스 이름 (예: "iPhone (iOS 17.2)", "Chrome on macOS")."""

    ua = user_agent.lower()

    if "iphone" in ua:
        version = _ios_version(ua)
        return f"iPhone (iOS {version})" if version else "iPhone"
    if "ipad" in ua:
        version = _ios_version(ua)
        return f"iPad (iOS {version})" if version else "iPad"

    if "android" in ua:
        match = _ANDROID_VERSION_RE.search(ua)
        version = match.group(1) if match else "Unknown"
        device = _android_device(ua)
        return f"{device} (Android {version})" if device else f"Android {version}"

    return f"{_browser_name(ua)} on {_os_name(ua)}"


def _ios_version(ua: str) -> str | None:
    match = _IOS_VERSION_RE.search(ua)
    return f"{match.group(1)}.{match.group(2)}" if match else None


def _android_device(ua: str) -> str | None:
    samsung = _SAMSUNG_RE.search(ua)
    if samsung:
        return f"Samsung {samsung.group(1).upper()}"
    if "pixel" in ua:
        pixel = _PIXEL_RE.search(ua)
        return f"Pixel {pixel.group(1)}" if pixel else "Pixel"
    return None


def _browser_name(ua: str) -> str:
    # 순서가 중요하다: Edge UA 에는 chrome/safari 가 함께 들어 있다.
    if "edg" in ua:
        return "Edge"
    if "chrome" in ua:
        return "Chrome"
    if "safari" in ua:
        return "Safari"
    if "firefox" in ua:
        return "Firefox"
    if "opera" in ua or "opr" in ua:
        return "Opera"
    if "msie" in ua or "trident" in ua:
        return "Internet Explorer"
    return "Unknown Browser"


def _os_name(ua: str) -> str:
    for needle, name in _WINDOWS_VERSIONS:
        if needle in ua:
            return name
    if "windows" in ua:
        return "Windows"

    macos = _MACOS_RE.search(ua)
    if macos:
        return f"macOS 10.{macos.group(1)}"
    if "mac" in ua:
        return "macOS"

    if "linux" in ua:
        return "Linux"
    return "Unknown OS"


def _extract_ip_address(headers: Mapping[str, str], client_host: str | None) -> str:
    # 프록시/로드밸런서 뒤에서는 X-Forwarded-For 의 첫 번째 IP 가 실제 클라이언트다.
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return client_host or "Unknown"
