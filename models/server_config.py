"""Routing configuration models derived from nginx.conf."""

import os
import re
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DEFAULT_INDEX_FILES = ["index.html", "index.htm"]
DEFAULT_LISTEN_PORT = 80


class LocationKind(str, Enum):
    """location 匹配方式."""
    EXACT = "exact"
    PREFIX = "prefix"
    REGEX = "regex"


class LocationRule(BaseModel):
    """单个 location 块转换后的路由规则."""

    model_config = ConfigDict(frozen=True)

    kind: LocationKind = Field(..., description="匹配方式")
    matcher: str = Field(default="/", description="匹配串（路径或正则）")
    case_insensitive: bool = Field(default=False, description="正则是否忽略大小写（~*）")
    stop_on_match: bool = Field(default=False, description="前缀命中后跳过正则（^~）")
    proxy_target: Optional[str] = Field(default=None, description="proxy_pass 目标")
    root_override: Optional[str] = Field(default=None, description="location 内的 root，按请求解析")
    try_files: Optional[List[str]] = Field(default=None, description="try_files 候选列表")
    pattern: Optional[re.Pattern] = Field(default=None, description="编译后的正则", exclude=True)

    @field_validator("try_files")
    def validate_try_files(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """空列表视为未配置."""
        if not v:
            return None
        return v

    @model_validator(mode="after")
    def validate_kind_fields(self) -> "LocationRule":
        """stop_on_match 只对前缀规则有意义，正则规则必须带编译结果."""
        if self.stop_on_match and self.kind != LocationKind.PREFIX:
            raise ValueError("stop_on_match is only valid for prefix locations")
        if self.kind == LocationKind.REGEX and self.pattern is None:
            raise ValueError(f"Regex location '{self.matcher}' has no compiled pattern")
        if self.kind != LocationKind.REGEX and self.pattern is not None:
            raise ValueError(f"Only regex locations carry a pattern, got {self.kind.value}")
        return self

    @property
    def modifier(self) -> str:
        """还原 nginx 写法中的修饰符."""
        if self.kind == LocationKind.EXACT:
            return "="
        if self.kind == LocationKind.REGEX:
            return "~*" if self.case_insensitive else "~"
        return "^~" if self.stop_on_match else ""

    def describe(self) -> str:
        """用于日志显示的规则描述."""
        if self.modifier:
            return f"{self.modifier} {self.matcher}"
        return self.matcher


class ServerConfig(BaseModel):
    """第一个 http/server 块的扁平化路由配置，启动后只读."""

    model_config = ConfigDict(frozen=True)

    listen_port: int = Field(default=DEFAULT_LISTEN_PORT, ge=1, le=65535, description="监听端口")
    document_root: str = Field(..., description="站点根目录（绝对路径）")
    index_files: List[str] = Field(default_factory=lambda: list(DEFAULT_INDEX_FILES), min_length=1,
                                   description="目录默认文件")
    locations: List[LocationRule] = Field(default_factory=list, description="location 规则（保持源顺序）")
    base_dir: str = Field(..., description="基础目录，用于解析 location 内的 root")

    @field_validator("document_root", "base_dir")
    def validate_absolute(cls, v: str) -> str:
        """根目录必须是绝对路径."""
        if not os.path.isabs(v):
            raise ValueError(f"Path must be absolute: {v}")
        return v

    def resolve_location_root(self, location: Optional[LocationRule]) -> str:
        """
        计算请求实际使用的根目录

        Args:
            location: 命中的 location（可为 None）

        Returns:
            location 的 root（相对 base_dir 解析）或 server 的 document_root
        """
        if location is not None and location.root_override:
            return os.path.abspath(os.path.join(self.base_dir, location.root_override))
        return self.document_root

    def to_summary(self) -> Dict[str, Any]:
        """生成配置摘要（用于日志和状态显示）."""
        return {
            "listen_port": self.listen_port,
            "document_root": self.document_root,
            "index_files": list(self.index_files),
            "locations": [
                {
                    "rule": location.describe(),
                    "kind": location.kind.value,
                    "proxy_pass": location.proxy_target,
                    "root": location.root_override,
                    "try_files": location.try_files,
                }
                for location in self.locations
            ],
        }
