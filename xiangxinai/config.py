"""配置类定义。"""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .exceptions import ConfigError

DEFAULT_BASE_URL = "https://api.xiangxinai.cn/v1"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 3


@dataclass(frozen=True, slots=True)
class XiangxinAIConfig:
    """客户端运行配置，创建后不可修改。"""
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES

    def __post_init__(self) -> None:
        if not isinstance(self.api_key, str) or not self.api_key.strip():
            raise ConfigError("api_key 不能为空")
        if self.timeout is None or self.timeout <= 0:
            raise ConfigError(f"timeout 必须为正数: {self.timeout}")
        if self.max_retries is None or self.max_retries < 0:
            raise ConfigError(f"max_retries 不能为负数: {self.max_retries}")
        # 确保 URL 不以 / 结尾
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @classmethod
    def from_env(cls) -> XiangxinAIConfig:
        """从环境变量加载配置。"""
        def req(key: str) -> str:
            """获取必需的环境变量。"""
            value = os.environ.get(key)
            if not value or not value.strip():
                raise ConfigError(f"缺少环境变量: {key}")
            return value.strip()

        def opt(key: str, cast, default):
            raw = os.environ.get(key)
            if not raw or not raw.strip():
                return default
            try:
                return cast(raw.strip())
            except ValueError as exc:
                raise ConfigError(f"环境变量 {key} 格式无效: {raw}") from exc

        return cls(
            api_key=req("XIANGXINAI_API_KEY"),
            base_url=opt("XIANGXINAI_BASE_URL", str, DEFAULT_BASE_URL),
            timeout=opt("XIANGXINAI_TIMEOUT", float, DEFAULT_TIMEOUT),
            max_retries=opt("XIANGXINAI_MAX_RETRIES", int, DEFAULT_MAX_RETRIES),
        )


def load_env_file(path: str | os.PathLike[str] = ".env") -> None:
    """加载 .env 文件（不覆盖已存在的环境变量）。"""
    env_path = Path(path)
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


__all__ = ["XiangxinAIConfig", "load_env_file", "DEFAULT_BASE_URL", "DEFAULT_TIMEOUT", "DEFAULT_MAX_RETRIES"]
