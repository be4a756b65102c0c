"""Per-request routing decision model."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from .server_config import LocationRule


class OutcomeKind(str, Enum):
    """请求处理结果类型."""
    SERVE_FILE = "serve_file"
    PROXY = "proxy"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


DIRECTORY_INDEX_NOT_FOUND = "Directory index not found"

STATUS_CODES = {
    OutcomeKind.SERVE_FILE: 200,
    OutcomeKind.PROXY: 200,
    OutcomeKind.NOT_FOUND: 404,
    OutcomeKind.FORBIDDEN: 403,
}


class RouteOutcome(BaseModel):
    """静态解析引擎给出的最终结果."""

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind = Field(..., description="结果类型")
    file_path: Optional[str] = Field(default=None, description="要返回的文件")
    content_type: Optional[str] = Field(default=None, description="文件 MIME 类型")
    proxy_target: Optional[str] = Field(default=None, description="proxy_pass 目标")
    location: Optional[LocationRule] = Field(default=None, description="命中的 location")
    reason: str = Field(default="", description="结果说明")

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    @classmethod
    def serve(cls, file_path: str, content_type: str, location: Optional[LocationRule] = None) -> "RouteOutcome":
        return cls(kind=OutcomeKind.SERVE_FILE, file_path=file_path, content_type=content_type,
                   location=location, reason="file found")

    @classmethod
    def proxy(cls, location: LocationRule) -> "RouteOutcome":
        return cls(kind=OutcomeKind.PROXY, proxy_target=location.proxy_target, location=location,
                   reason="proxy location")

    @classmethod
    def not_found(cls, reason: str = "Not Found", location: Optional[LocationRule] = None) -> "RouteOutcome":
        return cls(kind=OutcomeKind.NOT_FOUND, location=location, reason=reason)

    @classmethod
    def forbidden(cls, location: Optional[LocationRule] = None) -> "RouteOutcome":
        return cls(kind=OutcomeKind.FORBIDDEN, location=location, reason="path escapes document root")
