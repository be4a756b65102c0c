#!/usr/bin/env python3
"""
nginx-preview - Local Nginx routing preview server
Main entry point
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

# Application version
APP_VERSION = "v1.0"

from loguru import logger
from pydantic import ValidationError
from models.preview_settings import PreviewSettings
from services.config_builder import ConfigBuildError, load_server_config
from services.config_locator import resolve_base_dir, resolve_config_path
from services.preview_server import PreviewServer
from utils.encoding_utils import read_config_text
from utils.logger import init_logger


def build_arg_parser() -> argparse.ArgumentParser:
    """命令行参数."""
    parser = argparse.ArgumentParser(
        prog="nginx-preview",
        description="Serve a workspace locally using the routing rules of its nginx.conf",
    )
    parser.add_argument("--config", default="", help="nginx.conf path (relative to the workspace)")
    parser.add_argument("--base-dir", default="", help="static base directory (relative to the workspace)")
    parser.add_argument("--workspace", default=os.getcwd(), help="workspace root (default: current directory)")
    parser.add_argument("--host", default="0.0.0.0", help="listen host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=0, help="override listen port, 0 uses the config port")
    parser.add_argument("--log-dir", default="logs", help="log directory (default: logs)")
    parser.add_argument("--log-level", default="INFO", help="console log level (default: INFO)")
    parser.add_argument("--print-config", action="store_true",
                        help="print the parsed routing table and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    return parser


def setup_exception_handler():
    """设置全局异常处理."""
    def handle_exception(exc_type, exc_value, exc_traceback):
        """处理未捕获的异常."""
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logger.opt(exception=(exc_type, exc_value, exc_traceback)).error("Uncaught exception occurred")

    sys.excepthook = handle_exception


def print_config(settings: PreviewSettings) -> int:
    """解析配置并输出路由表（不启动服务）."""
    config_path = resolve_config_path(settings)
    if not config_path:
        logger.error("nginx.conf not found")
        return 1

    try:
        config = load_server_config(read_config_text(config_path), resolve_base_dir(settings, config_path))
    except ConfigBuildError as e:
        logger.error(str(e))
        return 1

    if config is None:
        logger.error("No valid http/server block found in nginx.conf")
        return 1

    print(json.dumps(config.to_summary(), indent=2, ensure_ascii=False))
    return 0


async def run_server(settings: PreviewSettings) -> int:
    """启动服务并一直运行，直到被中断."""
    server = PreviewServer(settings)
    success, message = await server.start()
    if not success:
        logger.error(message)
        return 1

    logger.info(message)
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """主函数."""
    args = build_arg_parser().parse_args(argv)

    setup_exception_handler()
    init_logger(args.log_dir, args.log_level)
    logger.info("=" * 60)
    logger.info(f"nginx-preview {APP_VERSION} starting...")
    logger.info(f"Python version: {sys.version}")
    logger.info(f"Platform: {sys.platform}")

    try:
        settings = PreviewSettings(
            config_path=args.config,
            base_dir=args.base_dir,
            workspace_root=str(Path(args.workspace).resolve()),
            host=args.host,
            override_port=args.port,
        )
    except ValidationError as e:
        logger.error(f"Invalid settings: {e}")
        return 2

    if args.print_config:
        return print_config(settings)

    try:
        return asyncio.run(run_server(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, preview server stopped")
        return 0


if __name__ == "__main__":
    sys.exit(main())
