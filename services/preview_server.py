"""Local HTTP preview server driven by nginx.conf routing."""

import asyncio
import errno
from datetime import datetime
from http import HTTPStatus
from pathlib import Path
from typing import Dict, Optional, Set, Tuple
from urllib.parse import unquote, urlsplit
import psutil
from loguru import logger
from models.preview_settings import PreviewSettings
from models.preview_status import PreviewStatus, ServerState
from models.route_outcome import DIRECTORY_INDEX_NOT_FOUND, OutcomeKind
from models.server_config import ServerConfig
from services.config_builder import ConfigBuildError, build_server_config
from services.config_locator import resolve_base_dir, resolve_config_path, to_workspace_relative
from services.config_parser import ConfigParser
from services.location_matcher import pick_location
from services.static_resolver import StaticResolver
from utils.logger import get_channel_logger


# 配置常量
REQUEST_READ_TIMEOUT = 30  # 读取请求头超时时间（秒）
MAX_HEADER_LINES = 100
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


class ListenError(Exception):
    """监听端口失败."""


class MalformedRequestError(Exception):
    """无法解析的 HTTP 请求行."""


class ConnectionRegistry:
    """
    活动连接登记表

    停止服务时需要强制断开所有连接，否则半开的 keep-alive 连接会让关闭一直等待。
    只由 PreviewServer 持有。
    """

    def __init__(self):
        self._writers: Set[asyncio.StreamWriter] = set()

    def register(self, writer: asyncio.StreamWriter):
        self._writers.add(writer)

    def unregister(self, writer: asyncio.StreamWriter):
        self._writers.discard(writer)

    def terminate_all(self) -> int:
        """强制关闭所有连接，返回关闭的数量."""
        count = len(self._writers)
        for writer in list(self._writers):
            writer.transport.abort()
        self._writers.clear()
        return count

    def __len__(self) -> int:
        return len(self._writers)


def describe_port_owner(port: int) -> Optional[str]:
    """查找占用端口的进程（权限不足时返回 None）."""
    try:
        for conn in psutil.net_connections(kind="inet"):
            if not conn.laddr or conn.laddr.port != port or conn.status != psutil.CONN_LISTEN:
                continue
            if conn.pid is None:
                return None
            try:
                return f"{psutil.Process(conn.pid).name()} (pid {conn.pid})"
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                return f"pid {conn.pid}"
    except (psutil.Error, OSError) as e:
        logger.debug(f"Cannot inspect port owner for {port}: {e}")
    return None


def extract_request_path(target: str) -> str:
    """从请求目标中取出路径（去掉查询串，百分号解码一次）."""
    if target.startswith("/"):
        path = target.split("?", 1)[0].split("#", 1)[0]
    else:
        # absolute-form: http://host/path
        path = urlsplit(target).path
    return unquote(path) or "/"


async def _read_head_line(reader: asyncio.StreamReader) -> bytes:
    try:
        return await reader.readline()
    except ValueError as e:
        # StreamReader 的行长度上限（默认 64 KiB）
        raise MalformedRequestError(f"Request head line too long: {e}") from e


async def read_request_head(reader: asyncio.StreamReader) -> Optional[Tuple[str, str, Dict[str, str]]]:
    """
    读取请求行和请求头

    Returns:
        (method, target, headers)，客户端未发送任何数据就关闭时返回 None

    Raises:
        MalformedRequestError: 请求行格式错误，或请求行/请求头超过读取上限
    """
    line = await _read_head_line(reader)
    if not line:
        return None

    parts = line.decode("latin-1").strip().split(" ")
    if len(parts) != 3 or not parts[2].startswith("HTTP/"):
        raise MalformedRequestError(f"Malformed request line: {line!r}")
    method, target, _version = parts

    headers: Dict[str, str] = {}
    for _ in range(MAX_HEADER_LINES):
        line = await _read_head_line(reader)
        if line in (b"\r\n", b"\n", b""):
            break
        name, _, value = line.decode("latin-1").partition(":")
        headers[name.strip().lower()] = value.strip()
    return method.upper(), target, headers


class PreviewServer:
    """
    Nginx 模拟预览服务

    职责：
    1. 读取并解析 nginx.conf，构建只读的 ServerConfig
    2. 监听端口，按 location 规则处理每个请求
    3. 停止时强制断开所有连接
    """

    def __init__(self, settings: PreviewSettings):
        """初始化预览服务."""
        self._settings = settings
        self._parser = ConfigParser()
        self._resolver = StaticResolver()
        self._connections = ConnectionRegistry()
        self._server: Optional[asyncio.AbstractServer] = None
        self._config: Optional[ServerConfig] = None
        self._status = PreviewStatus()
        self._operation_lock = asyncio.Lock()  # 防止 start/stop 并发
        self._output = get_channel_logger()

    @property
    def settings(self) -> PreviewSettings:
        return self._settings

    @property
    def config(self) -> Optional[ServerConfig]:
        """当前生效的配置，未运行时为 None."""
        return self._config

    @property
    def status(self) -> PreviewStatus:
        """获取服务状态快照."""
        return self._status.model_copy(update={"active_connections": len(self._connections)})

    def is_running(self) -> bool:
        return self._server is not None

    def update_settings(self, settings: PreviewSettings):
        """更新启动参数（下次启动或重启时生效）."""
        self._settings = settings
        logger.info(f"Settings updated: config={settings.config_path or '-'}, "
                    f"host={settings.host}, port={settings.override_port or 'config'}")

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    async def start(self) -> Tuple[bool, str]:
        """
        启动预览服务

        Returns:
            (success, message)
        """
        if self._operation_lock.locked():
            return False, "Another operation is in progress"
        async with self._operation_lock:
            return await self._start()

    async def stop(self) -> Tuple[bool, str]:
        """
        停止预览服务（强制断开所有连接）

        Returns:
            (success, message)
        """
        if self._operation_lock.locked():
            return False, "Another operation is in progress"
        async with self._operation_lock:
            return await self._stop()

    async def restart(self) -> Tuple[bool, str]:
        """重启服务：完全停止旧实例后重新读取配置."""
        if self._operation_lock.locked():
            return False, "Another operation is in progress"
        async with self._operation_lock:
            if self._server is not None:
                await self._stop()
            return await self._start()

    async def _start(self) -> Tuple[bool, str]:
        if self._server is not None:
            return False, "Preview server is already running"

        self._status = PreviewStatus(state=ServerState.STARTING)

        try:
            config_path = resolve_config_path(self._settings)
            if not config_path:
                return self._fail_start("nginx.conf not found (place it in the workspace or set a config path)")

            try:
                result = await asyncio.to_thread(self._parser.parse_config_file, config_path)
            except OSError as e:
                return self._fail_start(f"Failed to read {config_path}: {e}")

            base_dir = resolve_base_dir(self._settings, config_path)
            try:
                config = build_server_config(result.nodes, base_dir)
            except ConfigBuildError as e:
                return self._fail_start(f"Failed to build config: {e}")
            if config is None:
                return self._fail_start("No valid http/server block found in nginx.conf")

            host = self._settings.host
            port = self._settings.override_port or config.listen_port

            self._output.info(f"> [{datetime.now():%H:%M:%S}] Starting preview server...")
            workspace_root = self._settings.workspace_root
            self._output.info(f"- Config file: {to_workspace_relative(config_path, workspace_root)}")
            self._output.info(f"- Base directory: {to_workspace_relative(base_dir, workspace_root)}")
            self._output.info(f"- Document root: {config.document_root}")
            self._output.info(f"- Listen address: http://{host}:{port}")

            try:
                server = await self._open_listener(host, port)
            except ListenError as e:
                return self._fail_start(str(e))

        except Exception as e:
            logger.exception(f"Unexpected error while starting preview server: {e}")
            return self._fail_start(f"Unexpected error while starting: {e}")

        self._server = server
        self._config = config
        self._status = PreviewStatus(
            state=ServerState.RUNNING,
            host=host,
            port=port,
            config_path=config_path,
            base_dir=base_dir,
            document_root=config.document_root,
            started_at=datetime.now(),
        )
        self._output.info(f"[OK] Preview server ready: {self._status.url}")
        return True, f"Preview server started: {self._status.url}"

    async def _open_listener(self, host: str, port: int) -> asyncio.AbstractServer:
        """绑定端口，失败时抛出 ListenError 且不留下半启动的监听."""
        try:
            return await asyncio.start_server(self._handle_connection, host, port)
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                owner = await asyncio.to_thread(describe_port_owner, port)
                suffix = f" by {owner}" if owner else ""
                raise ListenError(f"Port {port} is already in use{suffix}") from e
            raise ListenError(f"Failed to listen on {host}:{port}: {e.strerror or e}") from e

    def _fail_start(self, message: str) -> Tuple[bool, str]:
        logger.error(f"Preview server failed to start: {message}")
        self._output.info(f"[Fatal] {message}")
        self._config = None
        self._status = PreviewStatus(state=ServerState.ERROR, last_error=message)
        return False, message

    async def _stop(self) -> Tuple[bool, str]:
        if self._server is None:
            return False, "Preview server is not running"

        self._status.state = ServerState.STOPPING
        terminated = self._connections.terminate_all()

        server = self._server
        self._server = None
        server.close()
        await server.wait_closed()

        self._config = None
        self._status = PreviewStatus(state=ServerState.STOPPED)
        self._output.info(f"Preview server stopped ({terminated} connections terminated)")
        return True, "Preview server stopped"

    # ------------------------------------------------------------------
    # 请求处理
    # ------------------------------------------------------------------

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._connections.register(writer)
        try:
            await self._serve_request(reader, writer)
        except (ConnectionError, asyncio.IncompleteReadError, asyncio.TimeoutError) as e:
            logger.debug(f"Connection closed before response: {e!r}")
        finally:
            self._connections.unregister(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug(f"Error while closing connection: {e!r}")

    async def _serve_request(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        try:
            head = await asyncio.wait_for(read_request_head(reader), REQUEST_READ_TIMEOUT)
        except MalformedRequestError as e:
            logger.debug(str(e))
            await self._write_response(writer, 400, TEXT_CONTENT_TYPE, b"400 Bad Request")
            return

        if head is None:
            return

        method, target, _headers = head
        status, content_type, body = await self.dispatch(method, target)
        await self._write_response(writer, status, content_type, body, head_only=method == "HEAD")

    async def dispatch(self, method: str, target: str) -> Tuple[int, str, bytes]:
        """
        处理一个请求

        Args:
            method: 请求方法
            target: 请求目标（原始 URL 路径）

        Returns:
            (status_code, content_type, body)
        """
        config = self._config
        if config is None:
            logger.error(f"Request received while no config is loaded: {method} {target}")
            return 500, TEXT_CONTENT_TYPE, b"500 Internal Server Error"

        path = extract_request_path(target)
        location = pick_location(config.locations, path)
        self._output.info(f"{method} {path} -> {location.matcher if location else 'default'}")
        self._status.requests_handled += 1

        try:
            outcome = await asyncio.to_thread(self._resolver.resolve, config, location, path)

            if outcome.kind == OutcomeKind.PROXY:
                self._output.info(f"[Proxy] {path} -> {outcome.proxy_target} (mock response only)")
                body = f"[Mock] Matched proxy location: {outcome.proxy_target}"
                return 200, TEXT_CONTENT_TYPE, body.encode("utf-8")

            if outcome.kind == OutcomeKind.SERVE_FILE:
                data = await asyncio.to_thread(Path(outcome.file_path).read_bytes)
                return 200, outcome.content_type, data

            if outcome.kind == OutcomeKind.FORBIDDEN:
                return 403, TEXT_CONTENT_TYPE, b"403 Forbidden"

            if outcome.reason == DIRECTORY_INDEX_NOT_FOUND:
                return 404, TEXT_CONTENT_TYPE, b"404 Not Found (Directory index not found)"
            return 404, TEXT_CONTENT_TYPE, b"404 Not Found"

        except Exception as e:
            logger.exception(f"Request failed: {method} {path}")
            self._output.info(f"[Error] Request handling failed: {e}")
            self._status.last_error = str(e)
            return 500, TEXT_CONTENT_TYPE, b"500 Internal Server Error"

    async def _write_response(self, writer: asyncio.StreamWriter, status: int, content_type: str,
                              body: bytes, head_only: bool = False):
        reason = HTTPStatus(status).phrase
        head = (
            f"HTTP/1.1 {status} {reason}\r\n"
            f"Content-Type: {content_type}\r\n"
            f"Content-Length: {len(body)}\r\n"
            "Connection: close\r\n"
            "\r\n"
        )
        writer.write(head.encode("latin-1") + (b"" if head_only else body))
        await writer.drain()
