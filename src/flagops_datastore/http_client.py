"""Identity store HTTP クライアント実装"""

from __future__ import annotations

import asyncio
import threading
from urllib.parse import quote

import httpx
import structlog

from .config import DataStoreConfig
from .exceptions import DataStoreError, FetchError, WriteError
from .models import IdentityAttributes, IdentityNamespace, attributes_from_json

logger = structlog.get_logger(__name__)


def _quote_segment(segment: str) -> str:
    # "." / ".." は httpx のパス正規化で除去される
    if segment in (".", ".."):
        return segment.replace(".", "%2E")
    return quote(segment, safe="")


class HttpIdentityStore:
    """httpx を使った identity store クライアント。

    同期・非同期のクライアントはそれぞれ初回使用時に一度だけ作成し、以後再利用する。
    注入されたクライアントには設定のヘッダーを追加し、タイムアウトはリクエストごとに渡す。
    """

    def __init__(
        self,
        config: DataStoreConfig,
        http_client: httpx.Client | None = None,
        async_http_client: httpx.AsyncClient | None = None,
    ) -> None:
        config.validate()
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        if http_client is not None:
            http_client.headers.update(config.headers)
        if async_http_client is not None:
            async_http_client.headers.update(config.headers)
        self._client = http_client
        self._async_client = async_http_client
        self._close_task: asyncio.Task[None] | None = None
        self._lock = threading.Lock()

    @property
    def config(self) -> DataStoreConfig:
        return self._config

    def _get_client(self) -> httpx.Client:
        with self._lock:
            if self._client is None:
                self._client = httpx.Client(
                    headers=self._config.headers,
                    timeout=self._config.timeout_seconds,
                )
        return self._client

    def _get_async_client(self) -> httpx.AsyncClient:
        with self._lock:
            if self._async_client is None:
                self._async_client = httpx.AsyncClient(
                    headers=self._config.headers,
                    timeout=self._config.timeout_seconds,
                )
        return self._async_client

    def _url(self, namespace: IdentityNamespace, identity: str, key: str | None = None) -> str:
        url = f"{self._base_url}/{namespace}/{_quote_segment(identity)}"
        if key is not None:
            url = f"{url}/{_quote_segment(key)}"
        return url

    def _parse_attributes(self, resp: httpx.Response, context: str) -> IdentityAttributes:
        if not resp.is_success:
            raise FetchError(f"{context}: HTTP {resp.status_code}: {resp.text}")
        try:
            data = resp.json()
        except ValueError as e:
            raise FetchError(f"{context}: malformed JSON body: {e}", cause=e) from e
        return attributes_from_json(data)

    def _check_written(self, resp: httpx.Response, context: str) -> None:
        if resp.status_code == 200:
            return
        status_text = f"{resp.status_code} {resp.reason_phrase}".strip()
        raise WriteError(
            f"{context}: {status_text}",
            status_code=resp.status_code,
            status_text=status_text,
        )

    def get_attributes(self, namespace: IdentityNamespace, identity: str) -> IdentityAttributes:
        """identity の属性一覧を取得する。"""
        context = f"get_{namespace}({identity})"
        logger.debug(
            "identity_store_request", method="GET", namespace=str(namespace), identity=identity
        )
        try:
            resp = self._get_client().get(
                self._url(namespace, identity), timeout=self._config.timeout_seconds
            )
            return self._parse_attributes(resp, context)
        except DataStoreError:
            raise
        except httpx.HTTPError as e:
            raise FetchError(f"{context}: {e}", cause=e) from e

    def set_attribute(
        self, namespace: IdentityNamespace, identity: str, key: str, value: str
    ) -> None:
        """identity の属性を 1 件書き込む。"""
        context = f"set_{namespace}({identity}, {key})"
        logger.debug(
            "identity_store_request",
            method="PUT",
            namespace=str(namespace),
            identity=identity,
            key=key,
        )
        try:
            resp = self._get_client().put(
                self._url(namespace, identity, key),
                json={"value": value},
                timeout=self._config.timeout_seconds,
            )
            self._check_written(resp, context)
        except DataStoreError:
            raise
        except httpx.HTTPError as e:
            raise WriteError(f"{context}: {e}", cause=e) from e

    async def get_attributes_async(
        self, namespace: IdentityNamespace, identity: str
    ) -> IdentityAttributes:
        """identity の属性一覧を非同期で取得する。"""
        context = f"get_{namespace}({identity})"
        logger.debug(
            "identity_store_request", method="GET", namespace=str(namespace), identity=identity
        )
        try:
            resp = await self._get_async_client().get(
                self._url(namespace, identity), timeout=self._config.timeout_seconds
            )
            return self._parse_attributes(resp, context)
        except DataStoreError:
            raise
        except httpx.HTTPError as e:
            raise FetchError(f"{context}: {e}", cause=e) from e

    async def set_attribute_async(
        self, namespace: IdentityNamespace, identity: str, key: str, value: str
    ) -> None:
        """identity の属性を非同期で 1 件書き込む。"""
        context = f"set_{namespace}({identity}, {key})"
        logger.debug(
            "identity_store_request",
            method="PUT",
            namespace=str(namespace),
            identity=identity,
            key=key,
        )
        try:
            resp = await self._get_async_client().put(
                self._url(namespace, identity, key),
                json={"value": value},
                timeout=self._config.timeout_seconds,
            )
            self._check_written(resp, context)
        except DataStoreError:
            raise
        except httpx.HTTPError as e:
            raise WriteError(f"{context}: {e}", cause=e) from e

    def close(self) -> None:
        """同期クライアントを閉じ、非同期クライアントも解放する。

        イベントループ実行中に呼ばれた場合、非同期クライアントのクローズは
        そのループ上にスケジュールされる。
        """
        if self._client is not None:
            self._client.close()
        if self._async_client is None or self._async_client.is_closed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._async_client.aclose())
            return
        self._close_task = loop.create_task(self._async_client.aclose())

    async def aclose(self) -> None:
        """非同期クライアントを閉じる。"""
        if self._async_client is not None:
            await self._async_client.aclose()
