"""
Error taxonomy and the bilingual (Vietnamese / English) messages shown to users.

Every failure is scoped to the smallest component that can recover on its own:
validation errors stay inline, service errors become a banner, stroke data and
render errors stay inside one animation panel.
"""

MSG_EMPTY_INPUT = "Vui lòng nhập một từ để tìm kiếm / Please enter a word to search"
MSG_SERVICE_ERROR = (
    "Đã xảy ra lỗi khi tạo chữ Hán. Vui lòng thử lại. / "
    "An error occurred while generating Chinese characters. Please try again."
)
MSG_LIBRARY_LOAD_FAILED = "Không thể tải thư viện vẽ nét / Failed to load stroke rendering library"
MSG_NO_STROKE_DATA = "Không thể tải dữ liệu chữ Hán / Cannot load character data"
MSG_NOT_CHINESE = "Không phải chữ Hán / Not a Chinese character"
MSG_RENDER_FAILED = "Lỗi animation / Animation error"


class ValidationError(ValueError):
    """Input rejected locally; the user edits it and resubmits."""

    def __init__(self, message: str = MSG_EMPTY_INPUT):
        super().__init__(message)
        self.message = message


class ServiceError(Exception):
    """Base class for Character Data Service failures."""


class ServiceUnavailableError(ServiceError):
    """Missing credential, upstream generation failure, or network failure."""


class StrokeDataUnavailableError(LookupError):
    """No stroke geometry could be resolved for one character."""

    def __init__(self, character: str, reason: str = "no stroke data", transient: bool = False):
        super().__init__(f"{reason}: {character}")
        self.character = character
        self.reason = reason
        # True when at least one source failed for a reason other than "not found"
        self.transient = transient


class RenderLibraryError(RuntimeError):
    """The stroke rendering library failed to load or returned an unusable handle."""
