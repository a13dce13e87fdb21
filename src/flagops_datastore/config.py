"""flagops-datastore クライアント設定"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from .exceptions import ConfigurationError

_ALLOWED_SCHEMES = ("http", "https")


@dataclass
class DataStoreConfig:
    """データストアクライアント設定。"""

    base_url: str
    api_key: str = ""
    timeout_seconds: float = 10.0

    def validate(self) -> None:
        """設定値を検証する。

        Raises:
            ConfigurationError: ベース URL が http(s) の絶対 URL でない場合、
                またはタイムアウトが正でない場合
        """
        try:
            url = httpx.URL(self.base_url)
        except (httpx.InvalidURL, TypeError) as e:
            raise ConfigurationError(f"invalid base url: {self.base_url!r}", cause=e) from e
        if url.scheme not in _ALLOWED_SCHEMES or not url.host:
            raise ConfigurationError(f"invalid base url: {self.base_url!r}")
        if self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"timeout_seconds must be positive: {self.timeout_seconds}"
            )

    @property
    def headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers
