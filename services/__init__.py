"""Service layer for nginx-preview."""

from .config_parser import ConfigParser
from .config_builder import build_server_config, load_server_config
from .location_matcher import pick_location
from .static_resolver import StaticResolver, safe_join
from .preview_server import PreviewServer

__all__ = [
    "ConfigParser",
    "build_server_config",
    "load_server_config",
    "pick_location",
    "StaticResolver",
    "safe_join",
    "PreviewServer"
]
