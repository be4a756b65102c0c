"""
文件编码工具模块
读取 nginx.conf 时自动识别编码
"""

from pathlib import Path
from typing import Optional, Union
import chardet
from loguru import logger


# chardet 检测时读取的最大字节数
DETECT_SAMPLE_SIZE = 100000
DETECT_MIN_CONFIDENCE = 0.5
FALLBACK_ENCODINGS = ["utf-8", "gbk", "gb18030"]


def detect_encoding(raw_data: bytes) -> Optional[str]:
    """
    检测字节内容的编码

    Args:
        raw_data: 文件内容

    Returns:
        编码名称，无法确定时返回 None
    """
    if raw_data.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"

    result = chardet.detect(raw_data[:DETECT_SAMPLE_SIZE])
    encoding = result.get("encoding")
    confidence = result.get("confidence") or 0

    if not encoding or confidence <= DETECT_MIN_CONFIDENCE:
        return None

    logger.debug(f"Detected encoding '{encoding}' (confidence: {confidence:.2f})")
    # chardet 可能返回 GB2312，统一按 GB18030 读取
    if encoding.lower() in ("gb2312", "gbk"):
        return "gb18030"
    # 纯 ASCII 内容按 UTF-8 处理
    if encoding.lower() == "ascii":
        return "utf-8"
    return encoding


def decode_config_bytes(raw_data: bytes) -> str:
    """按检测结果解码，失败时依次尝试常用编码."""
    detected = detect_encoding(raw_data)
    candidates = [detected] if detected else []
    candidates.extend(enc for enc in FALLBACK_ENCODINGS if enc != detected)

    for encoding in candidates:
        try:
            return raw_data.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            logger.debug(f"Failed to decode with {encoding}")
            continue

    logger.warning("All encoding attempts failed, decoding as utf-8 with replacement")
    return raw_data.decode("utf-8", errors="replace")


def read_config_text(file_path: Union[str, Path]) -> str:
    """
    健壮地读取配置文件

    Args:
        file_path: 文件路径

    Returns:
        文件内容字符串

    Raises:
        FileNotFoundError: 文件不存在
    """
    path = Path(file_path)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")

    raw_data = path.read_bytes()
    logger.debug(f"Read {len(raw_data)} bytes from {path}")
    return decode_config_bytes(raw_data)
