"""identity context で評価コンテキストを補強する OpenFeature プロバイダー"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, TypeVar

import httpx
import structlog
from openfeature.evaluation_context import EvaluationContext
from openfeature.flag_evaluation import ErrorCode, FlagResolutionDetails, FlagValueType, Reason
from openfeature.hook import Hook
from openfeature.provider import AbstractProvider, FeatureProvider, Metadata

from .config import DataStoreConfig
from .exceptions import FetchError
from .http_client import HttpIdentityStore
from .models import FETCH_FAILED_MESSAGE, IdentityAttributes, IdentityNamespace

T = TypeVar("T")

ObjectValue = Sequence[FlagValueType] | Mapping[str, FlagValueType]

PROVIDER_NAME = "flagops-data-store"

logger = structlog.get_logger(__name__)


def inject_identity_context(
    facts: IdentityAttributes, evaluation_context: EvaluationContext
) -> EvaluationContext:
    """facts を上書きマージした新しいコンテキストを返す。

    キーが衝突した場合は facts 側が優先される。引数のコンテキストは変更しない。
    """
    return EvaluationContext(
        targeting_key=evaluation_context.targeting_key,
        attributes={**evaluation_context.attributes, **facts},
    )


class DataStoreProvider(AbstractProvider):
    """ラップしたプロバイダーへ委譲する前に identity の facts を取得して注入する。

    targeting_key を持たないコンテキストはそのまま委譲され、I/O は発生しない。
    facts の取得に失敗した評価は例外を送出せず、デフォルト値と
    ErrorCode.GENERAL の結果に縮退する。
    """

    def __init__(
        self,
        base_url: str,
        provider: FeatureProvider,
        *,
        api_key: str = "",
        timeout_seconds: float = 10.0,
        http_client: httpx.Client | None = None,
        async_http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        config = DataStoreConfig(
            base_url=base_url,
            api_key=api_key,
            timeout_seconds=timeout_seconds,
        )
        self._store = HttpIdentityStore(config, http_client, async_http_client)
        self._provider = provider

    @classmethod
    def from_config(
        cls,
        config: DataStoreConfig,
        provider: FeatureProvider,
        *,
        http_client: httpx.Client | None = None,
        async_http_client: httpx.AsyncClient | None = None,
    ) -> DataStoreProvider:
        return cls(
            config.base_url,
            provider,
            api_key=config.api_key,
            timeout_seconds=config.timeout_seconds,
            http_client=http_client,
            async_http_client=async_http_client,
        )

    @property
    def wrapped_provider(self) -> FeatureProvider:
        return self._provider

    def get_metadata(self) -> Metadata:
        return Metadata(name=PROVIDER_NAME)

    def get_provider_hooks(self) -> list[Hook]:
        return []

    def shutdown(self) -> None:
        """同期・非同期両方の HTTP クライアントを解放する。"""
        self._store.close()

    async def aclose(self) -> None:
        await self._store.aclose()
        self._store.close()

    def __enter__(self) -> DataStoreProvider:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    async def __aenter__(self) -> DataStoreProvider:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # --- evaluation ---

    def _resolve(
        self,
        resolve: Callable[[str, T, EvaluationContext | None], FlagResolutionDetails[T]],
        flag_key: str,
        default_value: T,
        evaluation_context: EvaluationContext | None,
    ) -> FlagResolutionDetails[T]:
        if evaluation_context is None or evaluation_context.targeting_key in (None, ""):
            return resolve(flag_key, default_value, evaluation_context)
        identity = evaluation_context.targeting_key
        if not isinstance(identity, str):
            return _invalid_targeting_key(flag_key, default_value, identity)
        try:
            facts = self._store.get_attributes(IdentityNamespace.FACT, identity)
        except FetchError as e:
            return _fetch_failed(flag_key, default_value, identity, e)
        return resolve(flag_key, default_value, inject_identity_context(facts, evaluation_context))

    async def _resolve_async(
        self,
        resolve: Callable[[str, T, EvaluationContext | None], Awaitable[FlagResolutionDetails[T]]],
        flag_key: str,
        default_value: T,
        evaluation_context: EvaluationContext | None,
    ) -> FlagResolutionDetails[T]:
        if evaluation_context is None or evaluation_context.targeting_key in (None, ""):
            return await resolve(flag_key, default_value, evaluation_context)
        identity = evaluation_context.targeting_key
        if not isinstance(identity, str):
            return _invalid_targeting_key(flag_key, default_value, identity)
        try:
            facts = await self._store.get_attributes_async(IdentityNamespace.FACT, identity)
        except FetchError as e:
            return _fetch_failed(flag_key, default_value, identity, e)
        return await resolve(
            flag_key, default_value, inject_identity_context(facts, evaluation_context)
        )

    def resolve_boolean_details(
        self,
        flag_key: str,
        default_value: bool,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[bool]:
        return self._resolve(
            self._provider.resolve_boolean_details, flag_key, default_value, evaluation_context
        )

    def resolve_float_details(
        self,
        flag_key: str,
        default_value: float,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[float]:
        return self._resolve(
            self._provider.resolve_float_details, flag_key, default_value, evaluation_context
        )

    def resolve_integer_details(
        self,
        flag_key: str,
        default_value: int,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[int]:
        return self._resolve(
            self._provider.resolve_integer_details, flag_key, default_value, evaluation_context
        )

    def resolve_object_details(
        self,
        flag_key: str,
        default_value: ObjectValue,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[ObjectValue]:
        return self._resolve(
            self._provider.resolve_object_details, flag_key, default_value, evaluation_context
        )

    def resolve_string_details(
        self,
        flag_key: str,
        default_value: str,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[str]:
        return self._resolve(
            self._provider.resolve_string_details, flag_key, default_value, evaluation_context
        )

    async def resolve_boolean_details_async(
        self,
        flag_key: str,
        default_value: bool,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[bool]:
        return await self._resolve_async(
            self._provider.resolve_boolean_details_async,
            flag_key,
            default_value,
            evaluation_context,
        )

    async def resolve_float_details_async(
        self,
        flag_key: str,
        default_value: float,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[float]:
        return await self._resolve_async(
            self._provider.resolve_float_details_async,
            flag_key,
            default_value,
            evaluation_context,
        )

    async def resolve_integer_details_async(
        self,
        flag_key: str,
        default_value: int,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[int]:
        return await self._resolve_async(
            self._provider.resolve_integer_details_async,
            flag_key,
            default_value,
            evaluation_context,
        )

    async def resolve_object_details_async(
        self,
        flag_key: str,
        default_value: ObjectValue,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[ObjectValue]:
        return await self._resolve_async(
            self._provider.resolve_object_details_async,
            flag_key,
            default_value,
            evaluation_context,
        )

    async def resolve_string_details_async(
        self,
        flag_key: str,
        default_value: str,
        evaluation_context: EvaluationContext | None = None,
    ) -> FlagResolutionDetails[str]:
        return await self._resolve_async(
            self._provider.resolve_string_details_async,
            flag_key,
            default_value,
            evaluation_context,
        )

    # --- direct accessors ---

    def get_identity_facts(self, identity: str) -> IdentityAttributes:
        """identity の facts を取得する。失敗時は FetchError を送出する。"""
        return self._store.get_attributes(IdentityNamespace.FACT, identity)

    def set_identity_fact(self, identity: str, key: str, value: str) -> None:
        """identity の fact を書き込む。200 以外は WriteError を送出する。"""
        self._store.set_attribute(IdentityNamespace.FACT, identity, key, value)

    def get_identity_secrets(self, identity: str) -> IdentityAttributes:
        """identity の secrets を取得する。"""
        return self._store.get_attributes(IdentityNamespace.SECRET, identity)

    def set_identity_secret(self, identity: str, key: str, value: str) -> None:
        """identity の secret を書き込む。"""
        self._store.set_attribute(IdentityNamespace.SECRET, identity, key, value)

    async def get_identity_facts_async(self, identity: str) -> IdentityAttributes:
        return await self._store.get_attributes_async(IdentityNamespace.FACT, identity)

    async def set_identity_fact_async(self, identity: str, key: str, value: str) -> None:
        await self._store.set_attribute_async(IdentityNamespace.FACT, identity, key, value)

    async def get_identity_secrets_async(self, identity: str) -> IdentityAttributes:
        return await self._store.get_attributes_async(IdentityNamespace.SECRET, identity)

    async def set_identity_secret_async(self, identity: str, key: str, value: str) -> None:
        await self._store.set_attribute_async(IdentityNamespace.SECRET, identity, key, value)


def _fetch_failed(
    flag_key: str, default_value: T, identity: str, error: FetchError
) -> FlagResolutionDetails[T]:
    logger.warning(
        "identity_context_fetch_failed",
        flag_key=flag_key,
        identity=identity,
        error=str(error),
    )
    return FlagResolutionDetails(
        value=default_value,
        reason=Reason.ERROR,
        error_code=ErrorCode.GENERAL,
        error_message=FETCH_FAILED_MESSAGE,
    )


def _invalid_targeting_key(
    flag_key: str, default_value: T, identity: Any
) -> FlagResolutionDetails[T]:
    logger.warning(
        "invalid_targeting_key",
        flag_key=flag_key,
        targeting_key_type=type(identity).__name__,
    )
    return FlagResolutionDetails(
        value=default_value,
        reason=Reason.ERROR,
        error_code=ErrorCode.INVALID_CONTEXT,
        error_message=f"targeting key must be a string, got {type(identity).__name__}",
    )
