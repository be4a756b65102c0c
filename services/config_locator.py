"""Locate nginx.conf and the static base directory inside a workspace."""

import os
from pathlib import Path
from typing import List, Optional
from loguru import logger
from models.preview_settings import PreviewSettings


CONFIG_FILE_NAME = "nginx.conf"
# 搜索 nginx.conf 时跳过的目录
EXCLUDED_DIRS = {"dist", "build", "out", ".git", "node_modules"}
MAX_SEARCH_RESULTS = 50


def resolve_path_in_workspace(maybe_path: Optional[str], workspace_root: Optional[str]) -> str:
    """
    将相对路径解析为工作区内的绝对路径

    Args:
        maybe_path: 相对或绝对路径
        workspace_root: 工作区根目录

    Returns:
        解析后的路径；无法解析时原样返回
    """
    p = (maybe_path or "").strip()
    if not p or os.path.isabs(p):
        return p
    if workspace_root:
        return os.path.join(workspace_root, p)
    return p


def find_config_files(workspace_root: str, limit: int = MAX_SEARCH_RESULTS) -> List[Path]:
    """在工作区内搜索 nginx.conf（跳过构建产物和依赖目录）."""
    found = []
    for dirpath, dirnames, filenames in os.walk(workspace_root):
        dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDED_DIRS)
        if CONFIG_FILE_NAME in filenames:
            found.append(Path(dirpath) / CONFIG_FILE_NAME)
            if len(found) >= limit:
                break
    return found


def resolve_config_path(settings: PreviewSettings) -> Optional[str]:
    """
    寻找有效的 nginx.conf

    顺序：设置中的路径 → 工作区根目录下的 nginx.conf → 工作区内路径最短的 nginx.conf

    Returns:
        配置文件路径，找不到时返回 None
    """
    workspace_root = settings.workspace_root

    if settings.config_path:
        configured = resolve_path_in_workspace(settings.config_path, workspace_root)
        if os.path.isfile(configured):
            return configured
        logger.warning(f"Configured config file not accessible: {configured}")

    if not workspace_root:
        return None

    direct = os.path.join(workspace_root, CONFIG_FILE_NAME)
    if os.path.isfile(direct):
        return direct

    candidates = find_config_files(workspace_root)
    if not candidates:
        logger.info(f"No {CONFIG_FILE_NAME} found under {workspace_root}")
        return None

    # 路径越短越优先
    picked = min(candidates, key=lambda p: len(str(p)))
    logger.info(f"Found {len(candidates)} config candidates, using {picked}")
    return str(picked)


def resolve_base_dir(settings: PreviewSettings, config_path: str) -> str:
    """
    解析静态资源的基础目录

    顺序：设置中的目录 → 工作区根目录 → 配置文件所在目录
    """
    if settings.base_dir:
        return os.path.abspath(resolve_path_in_workspace(settings.base_dir, settings.workspace_root))
    if settings.workspace_root:
        return os.path.abspath(settings.workspace_root)
    return os.path.dirname(os.path.abspath(config_path))


def to_workspace_relative(abs_path: str, workspace_root: Optional[str]) -> str:
    """
    尽量把绝对路径转换为相对工作区的路径

    Returns:
        工作区本身返回 "."，工作区内返回相对路径，否则原样返回
    """
    full = (abs_path or "").strip()
    if not full or not workspace_root:
        return full

    root_resolved = os.path.abspath(workspace_root)
    file_resolved = os.path.abspath(full)
    root_lower = root_resolved.lower()
    file_lower = file_resolved.lower()

    if file_lower == root_lower:
        return "."
    if file_lower.startswith(root_lower.rstrip(os.sep) + os.sep):
        return os.path.relpath(file_resolved, root_resolved)
    return full
