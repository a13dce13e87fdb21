"""flagops-datastore の例外型定義"""

from __future__ import annotations


class DataStoreError(Exception):
    """flagops-datastore のエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class DataStoreErrorCodes:
    """DataStoreError のエラーコード定数。"""

    CONFIG_ERROR: str = "CONFIG_ERROR"
    FETCH_ERROR: str = "FETCH_ERROR"
    WRITE_ERROR: str = "WRITE_ERROR"
    INVALID_RESPONSE: str = "INVALID_RESPONSE"


class ConfigurationError(DataStoreError):
    """不正な設定 (ベース URL 等) で構築しようとした。"""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(DataStoreErrorCodes.CONFIG_ERROR, message, cause)


class FetchError(DataStoreError):
    """データストアからの GET に失敗した。"""

    def __init__(
        self,
        message: str,
        code: str = DataStoreErrorCodes.FETCH_ERROR,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(code, message, cause)


class WriteError(DataStoreError):
    """データストアへの PUT に失敗した。"""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        status_text: str = "",
        cause: Exception | None = None,
    ) -> None:
        super().__init__(DataStoreErrorCodes.WRITE_ERROR, message, cause)
        self.status_code = status_code
        self.status_text = status_text
