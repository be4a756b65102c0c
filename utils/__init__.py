"""Utility modules."""

from .logger import init_logger, attach_output_channel, detach_output_channel
from .encoding_utils import read_config_text

__all__ = [
    "init_logger",
    "attach_output_channel",
    "detach_output_channel",
    "read_config_text"
]
