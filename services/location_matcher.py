"""Nginx-like location selection."""

from typing import List, Optional
from models.server_config import LocationKind, LocationRule


def pick_location(locations: List[LocationRule], path: str) -> Optional[LocationRule]:
    """
    根据请求路径选择 location

    优先级：
    1. 精确匹配（= /path），取源顺序第一个
    2. 最长前缀匹配，长度相同取先出现的；若带 ^~ 直接返回
    3. 正则匹配（~ / ~*），按声明顺序取第一个命中的
    4. 没有正则命中时回退到第 2 步的最长前缀（可能为 None）

    Args:
        locations: ServerConfig.locations
        path: 请求路径

    Returns:
        命中的规则或 None
    """
    for location in locations:
        if location.kind == LocationKind.EXACT and location.matcher == path:
            return location

    best_prefix = None
    for location in locations:
        if location.kind != LocationKind.PREFIX or not path.startswith(location.matcher):
            continue
        # 严格大于，保证同长度时先出现的胜出
        if best_prefix is None or len(location.matcher) > len(best_prefix.matcher):
            best_prefix = location

    if best_prefix is not None and best_prefix.stop_on_match:
        return best_prefix

    for location in locations:
        if location.kind == LocationKind.REGEX and location.pattern.search(path):
            return location

    return best_prefix
