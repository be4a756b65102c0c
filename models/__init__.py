"""Data models for nginx-preview."""

from .config_ast import Block, Directive, Node, ParseResult, Token, TokenKind
from .server_config import LocationKind, LocationRule, ServerConfig
from .route_outcome import OutcomeKind, RouteOutcome
from .preview_settings import PreviewSettings
from .preview_status import PreviewStatus, ServerState

__all__ = [
    "Block",
    "Directive",
    "Node",
    "ParseResult",
    "Token",
    "TokenKind",
    "LocationKind",
    "LocationRule",
    "ServerConfig",
    "OutcomeKind",
    "RouteOutcome",
    "PreviewSettings",
    "PreviewStatus",
    "ServerState"
]
