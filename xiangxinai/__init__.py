"""象信AI安全护栏 Python 客户端。

基于LLM的上下文感知AI安全护栏，能够理解对话上下文进行安全检测。

使用示例:
    from xiangxinai import XiangxinAI, load_env_file

    load_env_file()
    client = XiangxinAI.from_env()

    result = client.check_prompt("用户的问题")
    print(result.overall_risk_level)  # 无风险/低风险/中风险/高风险
    print(result.suggest_action)  # 通过/阻断/代答
"""
import logging

# 默认不污染全局 logging 配置，将日志交给调用方处理
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def configure_logging(
    *,
    level: int | str = "INFO",
    http_level: int | str = "WARNING",
) -> None:
    """
    统一调整 xiangxinai 及 HTTP 依赖的日志级别。

    Args:
        level: xiangxinai.* 默认日志级别。
        http_level: urllib3 / httpx 请求日志级别。
    """
    logging.getLogger("xiangxinai").setLevel(level)
    logging.getLogger("urllib3").setLevel(http_level)
    logging.getLogger("httpx").setLevel(http_level)


__version__ = "2.0.0"

# 主要公共 API
from .client import DEFAULT_TEXT_MODEL, DEFAULT_VISION_MODEL, AsyncXiangxinAI, XiangxinAI
from .config import XiangxinAIConfig, load_env_file
from .exceptions import (
    AuthenticationError,
    ConfigError,
    NetworkError,
    RateLimitError,
    ServerError,
    ValidationError,
    XiangxinAIError,
)

# 数据模型
from .models import (
    ACTION_BLOCK,
    ACTION_PASS,
    ACTION_REPLACE,
    RISK_HIGH,
    RISK_LEVELS,
    RISK_LOW,
    RISK_MEDIUM,
    RISK_NONE,
    ComplianceResult,
    DataSecurityResult,
    GuardrailRequest,
    GuardrailResponse,
    GuardrailResult,
    Message,
    RiskResult,
    SecurityResult,
    risk_level_rank,
)

__all__ = [
    # 客户端
    "XiangxinAI",
    "AsyncXiangxinAI",
    "DEFAULT_TEXT_MODEL",
    "DEFAULT_VISION_MODEL",
    # 配置
    "XiangxinAIConfig",
    "load_env_file",
    "configure_logging",
    # 异常
    "XiangxinAIError",
    "ConfigError",
    "AuthenticationError",
    "RateLimitError",
    "ValidationError",
    "NetworkError",
    "ServerError",
    # 数据模型
    "Message",
    "GuardrailRequest",
    "RiskResult",
    "ComplianceResult",
    "SecurityResult",
    "DataSecurityResult",
    "GuardrailResult",
    "GuardrailResponse",
    "risk_level_rank",
    "RISK_NONE",
    "RISK_LOW",
    "RISK_MEDIUM",
    "RISK_HIGH",
    "RISK_LEVELS",
    "ACTION_PASS",
    "ACTION_BLOCK",
    "ACTION_REPLACE",
    "__version__",
]
