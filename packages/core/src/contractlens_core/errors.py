"""Error taxonomy for document loading, review and conversation calls.

Errors carry data, not text: ``describe(language)`` renders the message in
the caller's language. ``ServiceError`` is the exception to that rule: its
message comes from the backend (or from stage annotation) and is shown as-is.
"""

from __future__ import annotations

from contractlens_core.models import Language


class ReviewError(Exception):
    """Base class for every failure the core surfaces to the user."""

    # Structural errors are not tied to one review stage and pass through
    # stage annotation unchanged.
    is_structural: bool = True

    _messages: dict[Language, str] = {}

    def describe(self, language: Language = Language.CHINESE) -> str:
        return self._messages.get(language) or self._messages.get(Language.ENGLISH, self.__class__.__name__)

    def __str__(self) -> str:
        return self.describe(Language.ENGLISH)


class InvalidFileType(ReviewError):
    _messages = {
        Language.CHINESE: "文件类型识别失败。",
        Language.ENGLISH: "Failed to identify file type.",
    }


class UnsupportedFileType(ReviewError):
    def __init__(self, extension: str):
        super().__init__(extension)
        self.extension = extension

    def describe(self, language: Language = Language.CHINESE) -> str:
        ext = self.extension.upper()
        if language == Language.CHINESE:
            return f"暂不支持导入 {ext} 文件，请选择 TXT/PDF/DOCX。"
        return f"Importing {ext} files is not supported. Please select TXT/PDF/DOCX."


class FileReadFailed(ReviewError):
    _messages = {
        Language.CHINESE: "读取文件失败，请确认文件未被占用或已授予读取权限。",
        Language.ENGLISH: "Failed to read file. Please ensure the file is not in use and you have read permission.",
    }


class EmptyDocument(ReviewError):
    _messages = {
        Language.CHINESE: "文件内容为空，无法进行审核。",
        Language.ENGLISH: "File content is empty and cannot be reviewed.",
    }


class DocumentTooLarge(ReviewError):
    def __init__(self, estimated_tokens: int, limit: int):
        super().__init__(estimated_tokens, limit)
        self.estimated_tokens = estimated_tokens
        self.limit = limit

    def describe(self, language: Language = Language.CHINESE) -> str:
        if language == Language.CHINESE:
            return (
                f"文件内容过长（预估 {self.estimated_tokens} tokens），已超过当前模型可处理上限 {self.limit}。"
                "请拆分文档或更换模型。"
            )
        return (
            f"File content is too long (estimated {self.estimated_tokens} tokens), exceeding the model's "
            f"limit of {self.limit}. Please split the document or use a different model."
        )


class MissingReviewStance(ReviewError):
    _messages = {
        Language.CHINESE: "请先填写审核立场，再执行审核。",
        Language.ENGLISH: "Please fill in review stance before starting the review.",
    }


class MissingAPIKey(ReviewError):
    _messages = {
        Language.CHINESE: "请先在设置中填写有效的 API Key。",
        Language.ENGLISH: "Please fill in a valid API Key in Settings first.",
    }


class InvalidAPIEndpoint(ReviewError):
    _messages = {
        Language.CHINESE: "API Base URL 无效，请在设置中检查填写是否正确。",
        Language.ENGLISH: "API Base URL is invalid. Please check your settings.",
    }


class ServiceError(ReviewError):
    is_structural = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def describe(self, language: Language = Language.CHINESE) -> str:
        return self.message

    @classmethod
    def http_status(cls, status_code: int, language: Language) -> ServiceError:
        if language == Language.CHINESE:
            return cls(f"服务返回错误：HTTP {status_code}。")
        return cls(f"Service returned an error: HTTP {status_code}.")


class DecodeFailed(ReviewError):
    is_structural = False

    _messages = {
        Language.CHINESE: "解析模型响应失败。",
        Language.ENGLISH: "Failed to parse model response.",
    }
