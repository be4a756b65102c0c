"""Build the routing configuration from a parsed nginx.conf."""

import os
import re
from typing import List, Optional
from loguru import logger
from models.config_ast import Block, Node
from models.server_config import (
    DEFAULT_INDEX_FILES, DEFAULT_LISTEN_PORT, LocationKind, LocationRule, ServerConfig
)
from services.config_parser import ConfigParser, find_blocks, find_directives


LISTEN_HOST_PORT_PATTERN = re.compile(r":([0-9]+)$")
LISTEN_PORT_PATTERN = re.compile(r"[0-9]+")


class ConfigBuildError(Exception):
    """配置无法使用（启动前必须报告给调用方）."""


class InvalidLocationPatternError(ConfigBuildError):
    """location 中的正则表达式无法编译."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid regex in location '{pattern}': {reason}")


def parse_listen_port(args: Optional[List[str]]) -> int:
    """
    解析 listen 指令中的端口号

    支持 "8080"、"127.0.0.1:8080"、"[::]:8080"，其他写法返回 80。
    """
    if not args:
        return DEFAULT_LISTEN_PORT

    value = args[0]
    match = LISTEN_HOST_PORT_PATTERN.search(value)
    if match:
        port = int(match.group(1))
    elif LISTEN_PORT_PATTERN.fullmatch(value):
        port = int(value)
    else:
        return DEFAULT_LISTEN_PORT

    if not 1 <= port <= 65535:
        logger.warning(f"Listen port out of range: {value}, falling back to {DEFAULT_LISTEN_PORT}")
        return DEFAULT_LISTEN_PORT
    return port


def parse_index_list(args: Optional[List[str]]) -> List[str]:
    """解析 index 指令，未配置时返回默认列表."""
    names = [arg.strip() for arg in (args or []) if arg.strip()]
    return names or list(DEFAULT_INDEX_FILES)


def parse_try_files(args: Optional[List[str]]) -> Optional[List[str]]:
    """解析 try_files 指令，没有有效参数时返回 None."""
    candidates = [arg.strip() for arg in (args or []) if arg.strip()]
    return candidates or None


def compile_location_pattern(matcher: str, case_insensitive: bool) -> "re.Pattern":
    """编译 location 正则，失败时抛出 InvalidLocationPatternError."""
    try:
        return re.compile(matcher, re.IGNORECASE if case_insensitive else 0)
    except re.error as e:
        raise InvalidLocationPatternError(matcher, str(e)) from e


def _first_arg(nodes: List[Node], name: str) -> Optional[str]:
    directives = find_directives(nodes, name)
    if directives and directives[0].args:
        return directives[0].args[0]
    return None


def build_location_rule(block: Block) -> LocationRule:
    """
    将 location 块转换为路由规则

    Args:
        block: location 块

    Returns:
        LocationRule

    Raises:
        InvalidLocationPatternError: 正则无法编译
    """
    args = block.args
    modifier = args[0] if args else ""
    next_arg = args[1] if len(args) > 1 else None

    kind = LocationKind.PREFIX
    case_insensitive = False
    stop_on_match = False
    pattern = None

    if modifier == "=":
        kind = LocationKind.EXACT
        matcher = next_arg or "/"
    elif modifier in ("~", "~*"):
        kind = LocationKind.REGEX
        matcher = next_arg or ""
        case_insensitive = modifier == "~*"
        pattern = compile_location_pattern(matcher, case_insensitive)
    elif modifier == "^~":
        matcher = next_arg or "/"
        stop_on_match = True
    else:
        matcher = modifier or "/"

    try_files_directives = find_directives(block.children, "try_files")

    return LocationRule(
        kind=kind,
        matcher=matcher,
        case_insensitive=case_insensitive,
        stop_on_match=stop_on_match,
        pattern=pattern,
        proxy_target=_first_arg(block.children, "proxy_pass"),
        root_override=_first_arg(block.children, "root"),
        try_files=parse_try_files(try_files_directives[0].args if try_files_directives else None),
    )


def build_server_config(nodes: List[Node], base_dir: str) -> Optional[ServerConfig]:
    """
    从语法树构建服务器配置

    只使用第一个 http 块中的第一个 server 块，重复的指令以第一个为准。

    Args:
        nodes: 顶层节点
        base_dir: 基础目录（相对 root 以此为准）

    Returns:
        ServerConfig，找不到 http/server 块时返回 None

    Raises:
        InvalidLocationPatternError: location 正则无法编译
    """
    http_blocks = find_blocks(nodes, "http")
    if not http_blocks:
        logger.warning("No http block found in config")
        return None

    servers = find_blocks(http_blocks[0].children, "server")
    if not servers:
        logger.warning("No server block found in http block")
        return None

    server = servers[0]
    base_dir = os.path.abspath(base_dir)

    listen = find_directives(server.children, "listen")
    root = _first_arg(server.children, "root")
    index = find_directives(server.children, "index")

    locations = [build_location_rule(block) for block in find_blocks(server.children, "location")]

    config = ServerConfig(
        listen_port=parse_listen_port(listen[0].args if listen else None),
        document_root=os.path.abspath(os.path.join(base_dir, root)) if root else base_dir,
        index_files=parse_index_list(index[0].args if index else None),
        locations=locations,
        base_dir=base_dir,
    )
    logger.debug(f"Built server config: port={config.listen_port}, root={config.document_root}, "
                 f"{len(locations)} locations")
    return config


def load_server_config(content: str, base_dir: str) -> Optional[ServerConfig]:
    """解析配置文本并构建服务器配置（tokenize → parse → build）."""
    result = ConfigParser().parse_config_content(content)
    return build_server_config(result.nodes, base_dir)
