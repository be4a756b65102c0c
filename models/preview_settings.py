"""Host-supplied settings for the preview server."""

from typing import Optional
from pydantic import BaseModel, Field, field_validator


class PreviewSettings(BaseModel):
    """预览服务启动参数（由宿主环境提供）."""

    config_path: str = Field(default="", description="nginx.conf 路径（可相对工作区）")
    base_dir: str = Field(default="", description="静态资源基础目录（可相对工作区）")
    workspace_root: Optional[str] = Field(default=None, description="工作区根目录")
    host: str = Field(default="0.0.0.0", description="监听地址")
    override_port: int = Field(default=0, ge=0, le=65535, description="覆盖端口，0 表示使用配置中的端口")

    @field_validator("config_path", "base_dir")
    def strip_path(cls, v: Optional[str]) -> str:
        """去除首尾空白."""
        return (v or "").strip()

    @field_validator("host")
    def validate_host(cls, v: str) -> str:
        """空地址回退到 0.0.0.0."""
        v = (v or "").strip()
        return v or "0.0.0.0"
