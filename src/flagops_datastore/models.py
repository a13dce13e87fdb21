"""flagops-datastore データモデル"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from .exceptions import DataStoreErrorCodes, FetchError

# フラグ評価が失敗した場合の固定メッセージ
FETCH_FAILED_MESSAGE = "could not fetch identity context from data store"

IdentityAttributes = dict[str, str]


class IdentityNamespace(StrEnum):
    """データストア上の名前空間。URL のパス先頭に対応する。"""

    FACT = "fact"
    SECRET = "secret"


def attributes_from_json(data: Any) -> IdentityAttributes:
    """レスポンス JSON を string→string の辞書に変換する。

    JSON オブジェクトでない場合、または値に文字列以外が含まれる場合は
    FetchError(INVALID_RESPONSE) を送出する。
    """
    if not isinstance(data, dict):
        raise FetchError(
            f"expected JSON object, got {type(data).__name__}",
            code=DataStoreErrorCodes.INVALID_RESPONSE,
        )
    attributes: IdentityAttributes = {}
    for key, value in data.items():
        if not isinstance(value, str):
            raise FetchError(
                f"value for {key!r} is not a string",
                code=DataStoreErrorCodes.INVALID_RESPONSE,
            )
        attributes[key] = value
    return attributes
