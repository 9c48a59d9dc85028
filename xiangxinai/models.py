"""请求与响应数据模型。"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .exceptions import XiangxinAIError

# 风险等级（按严重程度升序）
RISK_NONE = "无风险"
RISK_LOW = "低风险"
RISK_MEDIUM = "中风险"
RISK_HIGH = "高风险"
RISK_LEVELS = (RISK_NONE, RISK_LOW, RISK_MEDIUM, RISK_HIGH)

# 建议动作
ACTION_PASS = "通过"
ACTION_BLOCK = "阻断"
ACTION_REPLACE = "代答"

MESSAGE_ROLES = ("user", "system", "assistant")

SAFE_RESPONSE_ID = "guardrails-safe-default"


def risk_level_rank(level: str) -> int:
    """返回风险等级的严重程度序号（无风险=0 … 高风险=3）。"""
    try:
        return RISK_LEVELS.index(level)
    except ValueError:
        raise ValueError(f"未知的风险等级: {level}") from None


@dataclass(slots=True)
class Message:
    """对话消息，content 为文本或多模态内容列表。"""

    role: str
    content: Union[str, List[Dict[str, Any]]]

    def to_payload(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass(slots=True)
class GuardrailRequest:
    """/guardrails 接口请求体。"""

    model: str
    messages: List[Message]
    extra_body: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_payload() for m in self.messages],
        }
        if self.extra_body:
            payload["extra_body"] = dict(self.extra_body)
        return payload


@dataclass(slots=True)
class RiskResult:
    """单一维度的检测结果。"""

    risk_level: str = RISK_NONE
    categories: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]):
        if not data:
            return cls()
        return cls(
            risk_level=data.get("risk_level") or RISK_NONE,
            categories=list(data.get("categories") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"risk_level": self.risk_level, "categories": list(self.categories)}


class ComplianceResult(RiskResult):
    """合规检测结果。"""
    __slots__ = ()


class SecurityResult(RiskResult):
    """安全检测结果。"""
    __slots__ = ()


class DataSecurityResult(RiskResult):
    """数据安全（敏感数据泄露）检测结果。"""
    __slots__ = ()


@dataclass(slots=True)
class GuardrailResult:
    """三个维度的检测结果，data 为可选项。"""

    compliance: ComplianceResult = field(default_factory=ComplianceResult)
    security: SecurityResult = field(default_factory=SecurityResult)
    data: Optional[DataSecurityResult] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> GuardrailResult:
        data = data or {}
        data_result = data.get("data")
        return cls(
            compliance=ComplianceResult.from_dict(data.get("compliance")),
            security=SecurityResult.from_dict(data.get("security")),
            data=DataSecurityResult.from_dict(data_result) if data_result is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "compliance": self.compliance.to_dict(),
            "security": self.security.to_dict(),
        }
        if self.data is not None:
            result["data"] = self.data.to_dict()
        return result


@dataclass(slots=True)
class GuardrailResponse:
    """护栏检测结果。

    overall_risk_level 由服务端给出，不在本地重新计算。
    """

    id: str
    result: GuardrailResult
    overall_risk_level: str
    suggest_action: str
    suggest_answer: Optional[str] = None
    score: Optional[float] = None

    @classmethod
    def safe(cls) -> GuardrailResponse:
        """空输入时本地生成的无风险结果（不调用服务）。"""
        return cls(
            id=SAFE_RESPONSE_ID,
            result=GuardrailResult(),
            overall_risk_level=RISK_NONE,
            suggest_action=ACTION_PASS,
            suggest_answer=None,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> GuardrailResponse:
        """
        解析服务端返回的检测结果。

        Raises:
            XiangxinAIError: 缺少 overall_risk_level 或 suggest_action
        """
        missing = [key for key in ("overall_risk_level", "suggest_action") if not data.get(key)]
        if missing:
            raise XiangxinAIError(
                f"Invalid guardrail response: missing {', '.join(missing)}",
                response_data=data,
            )
        return cls(
            id=data.get("id", ""),
            result=GuardrailResult.from_dict(data.get("result")),
            overall_risk_level=data["overall_risk_level"],
            suggest_action=data["suggest_action"],
            suggest_answer=data.get("suggest_answer"),
            score=data.get("score"),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "result": self.result.to_dict(),
            "overall_risk_level": self.overall_risk_level,
            "suggest_action": self.suggest_action,
            "suggest_answer": self.suggest_answer,
        }
        if self.score is not None:
            payload["score"] = self.score
        return payload

    @property
    def is_safe(self) -> bool:
        return self.suggest_action == ACTION_PASS

    @property
    def is_blocked(self) -> bool:
        return self.suggest_action == ACTION_BLOCK

    @property
    def has_substitute(self) -> bool:
        return self.suggest_action in (ACTION_REPLACE, ACTION_BLOCK)

    @property
    def all_categories(self) -> List[str]:
        """所有维度的风险类别（去重）。"""
        categories = list(self.result.compliance.categories)
        categories.extend(self.result.security.categories)
        if self.result.data is not None:
            categories.extend(self.result.data.categories)
        return list(dict.fromkeys(categories))


__all__ = [
    "RISK_NONE",
    "RISK_LOW",
    "RISK_MEDIUM",
    "RISK_HIGH",
    "RISK_LEVELS",
    "ACTION_PASS",
    "ACTION_BLOCK",
    "ACTION_REPLACE",
    "MESSAGE_ROLES",
    "SAFE_RESPONSE_ID",
    "risk_level_rank",
    "Message",
    "GuardrailRequest",
    "RiskResult",
    "ComplianceResult",
    "SecurityResult",
    "DataSecurityResult",
    "GuardrailResult",
    "GuardrailResponse",
]
