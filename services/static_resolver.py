"""Traversal-safe static file resolution."""

import os
import stat
from typing import Optional
from urllib.parse import unquote
from loguru import logger
from models.route_outcome import DIRECTORY_INDEX_NOT_FOUND, RouteOutcome
from models.server_config import LocationRule, ServerConfig


# 常用文件的 MIME 类型
MIME_TYPES = {
    ".html": "text/html",
    ".htm": "text/html",
    ".js": "application/javascript",
    ".css": "text/css",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".txt": "text/plain",
    ".xml": "application/xml",
    ".pdf": "application/pdf",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# 百分号编码最多展开的层数
MAX_UNQUOTE_ROUNDS = 5


def get_content_type(file_path: str) -> str:
    """根据扩展名获取 MIME 类型."""
    ext = os.path.splitext(file_path)[1].lower()
    return MIME_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


def _fully_unquote(segment: str) -> str:
    for _ in range(MAX_UNQUOTE_ROUNDS):
        decoded = unquote(segment)
        if decoded == segment:
            break
        segment = decoded
    return segment


def _is_encoded_dot_segment(segment: str) -> bool:
    """编码后的 . / .. 或编码的分隔符组成的片段."""
    decoded = _fully_unquote(segment)
    if decoded == segment:
        return False
    return any(part in (".", "..") for part in decoded.replace("\\", "/").split("/"))


def safe_join(root_dir: str, request_path: Optional[str]) -> Optional[str]:
    """
    安全地拼接路径，防止路径遍历

    Args:
        root_dir: 根目录
        request_path: 请求路径

    Returns:
        位于根目录内的绝对路径，越界时返回 None
    """
    raw = (request_path or "/").replace("\\", "/")
    if "\x00" in raw:
        return None

    segments = []
    for segment in raw.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not segments:
                # 试图越过根目录
                return None
            segments.pop()
            continue
        if "\x00" in _fully_unquote(segment) or _is_encoded_dot_segment(segment):
            return None
        segments.append(segment)

    root_resolved = os.path.realpath(root_dir)
    candidate = os.path.realpath(os.path.join(root_resolved, *segments))

    root_lower = root_resolved.lower()
    candidate_lower = candidate.lower()
    if candidate_lower == root_lower:
        return candidate

    prefix = root_lower if root_lower.endswith(os.sep) else root_lower + os.sep
    if not candidate_lower.startswith(prefix):
        logger.debug(f"Path rejected: {request_path!r} escapes {root_resolved}")
        return None
    return candidate


def _stat_or_none(path: str) -> Optional[os.stat_result]:
    """只把“不存在”视为缺失，其他文件系统错误继续抛出."""
    try:
        return os.stat(path)
    except (FileNotFoundError, NotADirectoryError):
        return None


def is_regular_file(path: str) -> bool:
    st = _stat_or_none(path)
    return st is not None and stat.S_ISREG(st.st_mode)


class StaticResolver:
    """
    静态资源解析引擎

    对同一份 ServerConfig 没有任何状态修改，可以并发调用。
    """

    def resolve(self, config: ServerConfig, location: Optional[LocationRule],
                request_path: str) -> RouteOutcome:
        """
        计算请求的最终结果

        Args:
            config: 服务器配置
            location: pick_location 选出的规则
            request_path: 请求路径（已解码）

        Returns:
            RouteOutcome

        Raises:
            OSError: 除“不存在”以外的文件系统错误
        """
        if location is not None and location.proxy_target:
            return RouteOutcome.proxy(location)

        root_dir = config.resolve_location_root(location)
        file_path = safe_join(root_dir, request_path)
        if file_path is None:
            return RouteOutcome.forbidden(location)

        st = _stat_or_none(file_path)

        if st is not None and stat.S_ISREG(st.st_mode):
            return RouteOutcome.serve(file_path, get_content_type(file_path), location)

        if st is not None and stat.S_ISDIR(st.st_mode):
            for index_name in config.index_files:
                index_path = safe_join(file_path, index_name)
                if index_path and is_regular_file(index_path):
                    return RouteOutcome.serve(index_path, get_content_type(index_path), location)

            fallback = self._probe_try_files(root_dir, location)
            if fallback:
                return RouteOutcome.serve(fallback, get_content_type(fallback), location)
            return RouteOutcome.not_found(DIRECTORY_INDEX_NOT_FOUND, location)

        fallback = self._probe_try_files(root_dir, location)
        if fallback:
            return RouteOutcome.serve(fallback, get_content_type(fallback), location)
        return RouteOutcome.not_found("Not Found", location)

    def _probe_try_files(self, root_dir: str, location: Optional[LocationRule]) -> Optional[str]:
        """依次尝试 try_files 中以 / 开头的候选，返回第一个存在的文件."""
        if location is None or not location.try_files:
            return None

        for candidate in location.try_files:
            # $uri、=404 等写法不支持
            if not candidate.startswith("/"):
                continue
            candidate_path = safe_join(root_dir, candidate)
            if candidate_path and is_regular_file(candidate_path):
                logger.debug(f"try_files hit: {candidate} -> {candidate_path}")
                return candidate_path
        return None
