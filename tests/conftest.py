"""テスト共通フィクスチャ"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pytest
from openfeature.evaluation_context import EvaluationContext
from openfeature.flag_evaluation import FlagResolutionDetails, Reason
from openfeature.provider import AbstractProvider, Metadata


@dataclass
class RecordedCall:
    method: str
    flag_key: str
    default_value: Any
    evaluation_context: EvaluationContext | None


class RecordingProvider(AbstractProvider):
    """呼び出しを記録し、型ごとに固定値を返すスタブプロバイダー。"""

    VALUES: dict[str, Any] = {
        "boolean": True,
        "float": 2.5,
        "integer": 42,
        "object": {"theme": "dark"},
        "string": "treatment",
    }

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[RecordedCall] = []

    def get_metadata(self) -> Metadata:
        return Metadata(name="recording")

    def _record(
        self,
        kind: str,
        flag_key: str,
        default_value: Any,
        evaluation_context: EvaluationContext | None,
    ) -> FlagResolutionDetails[Any]:
        self.calls.append(RecordedCall(kind, flag_key, default_value, evaluation_context))
        return FlagResolutionDetails(
            value=self.VALUES[kind],
            reason=Reason.TARGETING_MATCH,
            variant="on",
        )

    def resolve_boolean_details(self, flag_key, default_value, evaluation_context=None):
        return self._record("boolean", flag_key, default_value, evaluation_context)

    def resolve_float_details(self, flag_key, default_value, evaluation_context=None):
        return self._record("float", flag_key, default_value, evaluation_context)

    def resolve_integer_details(self, flag_key, default_value, evaluation_context=None):
        return self._record("integer", flag_key, default_value, evaluation_context)

    def resolve_object_details(self, flag_key, default_value, evaluation_context=None):
        return self._record("object", flag_key, default_value, evaluation_context)

    def resolve_string_details(self, flag_key, default_value, evaluation_context=None):
        return self._record("string", flag_key, default_value, evaluation_context)

    async def resolve_boolean_details_async(self, flag_key, default_value, evaluation_context=None):
        return self._record("boolean", flag_key, default_value, evaluation_context)

    async def resolve_float_details_async(self, flag_key, default_value, evaluation_context=None):
        return self._record("float", flag_key, default_value, evaluation_context)

    async def resolve_integer_details_async(self, flag_key, default_value, evaluation_context=None):
        return self._record("integer", flag_key, default_value, evaluation_context)

    async def resolve_object_details_async(self, flag_key, default_value, evaluation_context=None):
        return self._record("object", flag_key, default_value, evaluation_context)

    async def resolve_string_details_async(self, flag_key, default_value, evaluation_context=None):
        return self._record("string", flag_key, default_value, evaluation_context)


@pytest.fixture
def wrapped() -> RecordingProvider:
    return RecordingProvider()
