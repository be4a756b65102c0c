"""Preview server status models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
from datetime import datetime


class ServerState(str, Enum):
    """预览服务状态."""
    RUNNING = "running"
    STOPPED = "stopped"
    STARTING = "starting"
    STOPPING = "stopping"
    ERROR = "error"


class PreviewStatus(BaseModel):
    """预览服务整体状态."""

    state: ServerState = Field(default=ServerState.STOPPED, description="服务状态")

    # 监听信息
    host: Optional[str] = Field(default=None, description="监听地址")
    port: Optional[int] = Field(default=None, description="监听端口")

    # 配置信息
    config_path: Optional[str] = Field(default=None, description="nginx.conf 路径")
    base_dir: Optional[str] = Field(default=None, description="基础目录")
    document_root: Optional[str] = Field(default=None, description="站点根目录")

    # 运行信息
    started_at: Optional[datetime] = Field(default=None, description="启动时间")
    active_connections: int = Field(default=0, ge=0, description="当前连接数")
    requests_handled: int = Field(default=0, ge=0, description="已处理请求数")
    last_error: Optional[str] = Field(default=None, description="最近一次错误")

    def is_running(self) -> bool:
        """检查服务是否正在运行."""
        return self.state == ServerState.RUNNING

    @property
    def url(self) -> Optional[str]:
        """服务地址."""
        if self.host is None or self.port is None:
            return None
        return f"http://{self.host}:{self.port}"
