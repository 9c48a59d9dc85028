"""图片处理工具：将本地路径或在线 URL 统一转换为 base64 data URI。"""
from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from .exceptions import ValidationError, XiangxinAIError

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:image/jpeg;base64,"


def is_remote_url(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


def to_data_uri(image_data: bytes) -> str:
    """将图片字节编码为 data URI。"""
    return DATA_URI_PREFIX + base64.b64encode(image_data).decode("utf-8")


def read_local_image(path: str) -> bytes:
    """
    读取本地图片。

    Raises:
        ValidationError: 文件不存在（属于调用方输入错误）
    """
    file_path = Path(path)
    if not file_path.exists():
        raise ValidationError(f"Image file not found: {path}")
    return file_path.read_bytes()


def encode_image_to_data_uri(
    ref: str,
    session: Optional[requests.Session] = None,
    timeout: float = 30.0,
) -> str:
    """
    将图片引用转换为 base64 data URI。

    Args:
        ref: 本地文件路径或 http(s) URL
        session: 可选的 requests 会话，用于下载在线图片
        timeout: 下载超时时间（秒）

    Returns:
        ``data:image/jpeg;base64,...`` 格式的字符串

    Raises:
        ValidationError: 本地文件不存在
        XiangxinAIError: 其他读取或下载失败
    """
    try:
        if is_remote_url(ref):
            http = session or requests
            response = http.get(ref, timeout=timeout)
            response.raise_for_status()
            image_data = response.content
            logger.debug("在线图片已下载: %s (%d 字节)", ref, len(image_data))
        else:
            image_data = read_local_image(ref)
            logger.debug("本地图片已读取: %s (%d 字节)", ref, len(image_data))
    except ValidationError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.error("图片处理失败 %s: %s", ref, exc)
        raise XiangxinAIError(f"Failed to process image: {ref}: {exc}") from exc
    return to_data_uri(image_data)


def build_multimodal_content(prompt: Optional[str], data_uris: List[str]) -> List[Dict[str, Any]]:
    """构建多模态内容列表：可选的文本部分在前，图片按输入顺序在后。"""
    content: List[Dict[str, Any]] = []
    if prompt and prompt.strip():
        content.append({"type": "text", "text": prompt.strip()})
    for uri in data_uris:
        content.append({"type": "image_url", "image_url": {"url": uri}})
    return content


__all__ = [
    "DATA_URI_PREFIX",
    "is_remote_url",
    "to_data_uri",
    "read_local_image",
    "encode_image_to_data_uri",
    "build_multimodal_content",
]
