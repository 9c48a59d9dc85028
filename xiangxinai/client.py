"""象信AI安全护栏客户端。

基于LLM的上下文感知AI安全护栏，能够理解对话上下文进行安全检测。

使用示例:
    from xiangxinai import XiangxinAI

    client = XiangxinAI(api_key="your-api-key")

    # 检测用户输入
    result = client.check_prompt("用户问题")

    # 检测输出内容（基于上下文）
    result = client.check_response_ctx("用户问题", "助手回答")

    # 检测对话上下文
    messages = [
        {"role": "user", "content": "问题"},
        {"role": "assistant", "content": "回答"},
    ]
    result = client.check_conversation(messages)
    print(result.overall_risk_level)  # 无风险/低风险/中风险/高风险
    print(result.suggest_action)  # 通过/阻断/代答
"""
from __future__ import annotations
import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx
import requests

from . import __version__
from .config import DEFAULT_BASE_URL, DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT, XiangxinAIConfig
from .exceptions import (
    AuthenticationError,
    ConfigError,
    NetworkError,
    RateLimitError,
    ServerError,
    ValidationError,
    XiangxinAIError,
)
from .image_utils import build_multimodal_content, encode_image_to_data_uri, is_remote_url, read_local_image, to_data_uri
from .models import MESSAGE_ROLES, GuardrailRequest, GuardrailResponse, Message

logger = logging.getLogger(__name__)

USER_AGENT = f"xiangxinai-python/{__version__}"

DEFAULT_TEXT_MODEL = "Xiangxin-Guardrails-Text"
DEFAULT_VISION_MODEL = "Xiangxin-Guardrails-VL"

ENDPOINT_CONVERSATION = "/guardrails"
ENDPOINT_INPUT = "/guardrails/input"
ENDPOINT_OUTPUT = "/guardrails/output"
ENDPOINT_HEALTH = "/guardrails/health"
ENDPOINT_MODELS = "/guardrails/models"
GUARDRAIL_ENDPOINTS = (ENDPOINT_CONVERSATION, ENDPOINT_INPUT, ENDPOINT_OUTPUT)

# 超时、网络错误等的固定重试间隔（秒）
RETRY_DELAY = 1.0

MessageLike = Union[Message, Dict[str, Any]]


class _RetryableFailure(Exception):
    """可重试的失败：重试次数用尽时抛出 error。"""
    def __init__(self, delay: float, error: XiangxinAIError, cause: Optional[BaseException] = None):
        super().__init__(str(error))
        self.delay = delay
        self.error = error
        self.cause = cause


def rate_limit_delay(attempt: int) -> float:
    """429 指数退避时间（秒）：(2^attempt) * 1000 + 1000 毫秒，无上限。"""
    return ((2 ** attempt) * 1000 + 1000) / 1000


class _BaseXiangxinAI:
    """护栏客户端基类（请求校验、构造与响应处理，不含 I/O）。"""
    # 异常类作为类属性，方便外部通过 XiangxinAI.ValidationError 访问
    Error = XiangxinAIError
    ConfigError = ConfigError
    AuthenticationError = AuthenticationError
    RateLimitError = RateLimitError
    ValidationError = ValidationError
    NetworkError = NetworkError
    ServerError = ServerError

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        *,
        config: Optional[XiangxinAIConfig] = None,
    ):
        if config is not None:
            overrides = (
                api_key is not None
                or base_url != DEFAULT_BASE_URL
                or timeout != DEFAULT_TIMEOUT
                or max_retries != DEFAULT_MAX_RETRIES
            )
            if overrides:
                raise ConfigError("config 与 api_key/base_url/timeout/max_retries 不能同时指定")
        else:
            if api_key is None:
                raise ConfigError("api_key 不能为空")
            config = XiangxinAIConfig(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=max_retries)
        self._config = config

    @property
    def config(self) -> XiangxinAIConfig:
        return self._config

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

    # ---- 请求构造 ----

    @staticmethod
    def _prompt_payload(content: str, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        """返回 None 表示内容为空，应直接返回无风险结果。"""
        if not content or not content.strip():
            return None
        payload: Dict[str, Any] = {"input": content.strip()}
        if user_id:
            payload["xxai_app_user_id"] = user_id
        return payload

    @staticmethod
    def _response_ctx_payload(prompt: str, response: str, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        prompt_text = prompt.strip() if prompt else ""
        response_text = response.strip() if response else ""
        if not prompt_text and not response_text:
            return None
        payload: Dict[str, Any] = {"input": prompt_text, "output": response_text}
        if user_id:
            payload["xxai_app_user_id"] = user_id
        return payload

    @staticmethod
    def _conversation_payload(
        messages: Sequence[MessageLike],
        model: str,
        user_id: Optional[str],
    ) -> Optional[Dict[str, Any]]:
        if not messages:
            raise ValidationError("Messages cannot be empty")

        validated: List[Message] = []
        for msg in messages:
            if isinstance(msg, Message):
                role, content = msg.role, msg.content
            elif isinstance(msg, dict):
                role, content = msg.get("role"), msg.get("content")
            else:
                raise ValidationError("Each message must have 'role' and 'content' fields")
            if not role or not isinstance(content, str):
                raise ValidationError("Each message must have 'role' and 'content' fields")
            if role not in MESSAGE_ROLES:
                raise ValidationError("role must be one of: user, system, assistant")
            # 空内容的消息不发送
            if content.strip():
                validated.append(Message(role=role, content=content))

        if not validated:
            return None
        return _BaseXiangxinAI._guardrail_request(model, validated, user_id)

    @staticmethod
    def _guardrail_request(model: str, messages: List[Message], user_id: Optional[str]) -> Dict[str, Any]:
        extra_body = {"xxai_app_user_id": user_id} if user_id else {}
        return GuardrailRequest(model=model, messages=messages, extra_body=extra_body).to_payload()

    @staticmethod
    def _image_payload(prompt: Optional[str], data_uris: List[str], model: str, user_id: Optional[str]) -> Dict[str, Any]:
        content = build_multimodal_content(prompt, data_uris)
        return _BaseXiangxinAI._guardrail_request(model, [Message(role="user", content=content)], user_id)

    @staticmethod
    def _require_image(image: Optional[str]) -> None:
        if not image:
            raise ValidationError("Image path cannot be empty")

    @staticmethod
    def _require_images(images: Optional[Sequence[str]]) -> None:
        if isinstance(images, str):
            raise ValidationError("Images must be a list of image paths or URLs")
        if not images:
            raise ValidationError("Images list cannot be empty")

    # ---- 响应处理 ----

    @staticmethod
    def _error_detail(text: str, default: Optional[str] = None) -> Optional[str]:
        try:
            data = json.loads(text)
        except ValueError:
            return default if default is not None else text
        if isinstance(data, dict) and data.get("detail"):
            return str(data["detail"])
        return default if default is not None else text

    def _handle_response(self, endpoint: str, status_code: int, text: str, attempt: int) -> Any:
        if 200 <= status_code < 300:
            data = json.loads(text)
            if endpoint in GUARDRAIL_ENDPOINTS and isinstance(data, dict):
                return GuardrailResponse.from_dict(data)
            return data

        if status_code == 401:
            raise AuthenticationError("Invalid API key", status_code=status_code, response_data=text)
        if status_code == 422:
            detail = self._error_detail(text, default="Validation error")
            raise ValidationError(f"Validation error: {detail}", status_code=status_code, response_data=text)
        if status_code == 429:
            raise _RetryableFailure(
                rate_limit_delay(attempt),
                RateLimitError("Rate limit exceeded", status_code=status_code, response_data=text),
            )

        detail = self._error_detail(text)
        error_cls = ServerError if status_code >= 500 else XiangxinAIError
        raise error_cls(
            f"API request failed with status {status_code}: {detail}",
            status_code=status_code,
            response_data=text,
        )

    def _next_failure(self, exc: Exception) -> _RetryableFailure:
        """处理请求期间出现的非预期异常（统一按 1 秒重试）。"""
        if isinstance(exc, _RetryableFailure):
            return exc
        if isinstance(exc, XiangxinAIError):
            raise exc
        return _RetryableFailure(RETRY_DELAY, XiangxinAIError(f"Unexpected error: {exc}"), exc)

    def _check_exhausted(self, failure: _RetryableFailure, method: str, endpoint: str, attempt: int) -> None:
        if attempt >= self._config.max_retries:
            logger.error("请求失败 %s %s: %s", method, endpoint, failure.error)
            raise failure.error from failure.cause
        logger.warning(
            "请求失败 (%d/%d)，%.1fs 后重试 %s %s: %s",
            attempt + 1,
            self._config.max_retries + 1,
            failure.delay,
            method,
            endpoint,
            failure.error,
        )


class XiangxinAI(_BaseXiangxinAI):
    """象信AI安全护栏同步客户端。"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        *,
        config: Optional[XiangxinAIConfig] = None,
    ):
        super().__init__(api_key, base_url, timeout, max_retries, config=config)
        self._session = requests.Session()
        self._session.headers.update(self._headers())
        # 下载图片不携带认证头
        self._image_session = requests.Session()

    @classmethod
    def from_env(cls) -> XiangxinAI:
        """从环境变量创建客户端。"""
        return cls(config=XiangxinAIConfig.from_env())

    def check_prompt(self, content: str, user_id: Optional[str] = None) -> GuardrailResponse:
        """
        检测用户输入的安全性。

        Args:
            content: 要检测的用户输入内容
            user_id: 可选的终端用户ID，用于审计和封禁策略

        Returns:
            检测结果；内容为空时直接返回无风险结果，不调用服务

        Raises:
            ValidationError: 输入参数无效
            AuthenticationError: 认证失败
            RateLimitError: 超出速率限制
            XiangxinAIError: 其他API错误
        """
        payload = self._prompt_payload(content, user_id)
        if payload is None:
            return GuardrailResponse.safe()
        return self._make_request("POST", ENDPOINT_INPUT, payload)

    def check_conversation(
        self,
        messages: Sequence[MessageLike],
        model: str = DEFAULT_TEXT_MODEL,
        user_id: Optional[str] = None,
    ) -> GuardrailResponse:
        """
        检测对话上下文的安全性（上下文感知检测）。

        不是分别检测每条消息，而是分析整个对话的安全性。
        内容为空的消息会被忽略；全部为空时直接返回无风险结果。

        Args:
            messages: 对话消息列表，每条包含 role 和 content
            model: 使用的模型名称
            user_id: 可选的终端用户ID

        Raises:
            ValidationError: 消息列表为空或格式无效
        """
        payload = self._conversation_payload(messages, model, user_id)
        if payload is None:
            return GuardrailResponse.safe()
        return self._make_request("POST", ENDPOINT_CONVERSATION, payload)

    def check_response_ctx(self, prompt: str, response: str, user_id: Optional[str] = None) -> GuardrailResponse:
        """
        基于用户输入的上下文检测模型输出的安全性。

        Args:
            prompt: 用户输入，用于让护栏理解上下文语意
            response: 模型输出，实际检测对象
            user_id: 可选的终端用户ID
        """
        payload = self._response_ctx_payload(prompt, response, user_id)
        if payload is None:
            return GuardrailResponse.safe()
        return self._make_request("POST", ENDPOINT_OUTPUT, payload)

    def check_prompt_image(
        self,
        prompt: Optional[str],
        image: str,
        model: str = DEFAULT_VISION_MODEL,
        user_id: Optional[str] = None,
    ) -> GuardrailResponse:
        """
        检测文本和图片的安全性（多模态检测）。

        Args:
            prompt: 文本内容，可为空
            image: 本地图片路径或 http(s) URL
            model: 使用的模型名称
            user_id: 可选的终端用户ID

        Raises:
            ValidationError: 未提供图片或本地文件不存在
            XiangxinAIError: 图片读取或下载失败
        """
        self._require_image(image)
        data_uri = encode_image_to_data_uri(image, session=self._image_session, timeout=self._config.timeout)
        return self._make_request("POST", ENDPOINT_CONVERSATION, self._image_payload(prompt, [data_uri], model, user_id))

    def check_prompt_images(
        self,
        prompt: Optional[str],
        images: Sequence[str],
        model: str = DEFAULT_VISION_MODEL,
        user_id: Optional[str] = None,
    ) -> GuardrailResponse:
        """检测文本和多张图片的安全性，图片按输入顺序发送。"""
        self._require_images(images)
        data_uris = [
            encode_image_to_data_uri(image, session=self._image_session, timeout=self._config.timeout)
            for image in images
        ]
        return self._make_request("POST", ENDPOINT_CONVERSATION, self._image_payload(prompt, data_uris, model, user_id))

    def health_check(self) -> Dict[str, Any]:
        """检查API服务健康状态。"""
        return self._make_request("GET", ENDPOINT_HEALTH)

    def get_models(self) -> Dict[str, Any]:
        """获取可用模型列表。"""
        return self._make_request("GET", ENDPOINT_MODELS)

    def _make_request(self, method: str, endpoint: str, data: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self._config.base_url}{endpoint}"
        for attempt in range(self._config.max_retries + 1):
            logger.debug("发送请求 %s %s attempt=%d", method, endpoint, attempt)
            try:
                response = self._session.request(method, url, json=data, timeout=self._config.timeout)
                return self._handle_response(endpoint, response.status_code, response.text, attempt)
            except requests.Timeout as exc:
                failure = _RetryableFailure(RETRY_DELAY, XiangxinAIError("Request timeout"), exc)
            except requests.RequestException as exc:
                failure = _RetryableFailure(RETRY_DELAY, NetworkError("Connection error"), exc)
            except Exception as exc:  # noqa: BLE001
                failure = self._next_failure(exc)
            self._check_exhausted(failure, method, endpoint, attempt)
            time.sleep(failure.delay)
        raise XiangxinAIError("Request failed")

    def close(self) -> None:
        self._session.close()
        self._image_session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class AsyncXiangxinAI(_BaseXiangxinAI):
    """象信AI安全护栏异步客户端。

    同一实例上的并发调用互不影响，退避等待只挂起当前调用。
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        *,
        config: Optional[XiangxinAIConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, base_url, timeout, max_retries, config=config)
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            headers=self._headers(),
            timeout=self._config.timeout,
            transport=transport,
        )
        # 下载图片不携带认证头
        self._image_client = httpx.AsyncClient(timeout=self._config.timeout, transport=transport)

    @classmethod
    def from_env(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> AsyncXiangxinAI:
        return cls(config=XiangxinAIConfig.from_env(), transport=transport)

    async def check_prompt(self, content: str, user_id: Optional[str] = None) -> GuardrailResponse:
        payload = self._prompt_payload(content, user_id)
        if payload is None:
            return GuardrailResponse.safe()
        return await self._make_request("POST", ENDPOINT_INPUT, payload)

    async def check_conversation(
        self,
        messages: Sequence[MessageLike],
        model: str = DEFAULT_TEXT_MODEL,
        user_id: Optional[str] = None,
    ) -> GuardrailResponse:
        payload = self._conversation_payload(messages, model, user_id)
        if payload is None:
            return GuardrailResponse.safe()
        return await self._make_request("POST", ENDPOINT_CONVERSATION, payload)

    async def check_response_ctx(self, prompt: str, response: str, user_id: Optional[str] = None) -> GuardrailResponse:
        payload = self._response_ctx_payload(prompt, response, user_id)
        if payload is None:
            return GuardrailResponse.safe()
        return await self._make_request("POST", ENDPOINT_OUTPUT, payload)

    async def check_prompt_image(
        self,
        prompt: Optional[str],
        image: str,
        model: str = DEFAULT_VISION_MODEL,
        user_id: Optional[str] = None,
    ) -> GuardrailResponse:
        self._require_image(image)
        data_uri = await self._encode_image(image)
        return await self._make_request("POST", ENDPOINT_CONVERSATION, self._image_payload(prompt, [data_uri], model, user_id))

    async def check_prompt_images(
        self,
        prompt: Optional[str],
        images: Sequence[str],
        model: str = DEFAULT_VISION_MODEL,
        user_id: Optional[str] = None,
    ) -> GuardrailResponse:
        self._require_images(images)
        data_uris = [await self._encode_image(image) for image in images]
        return await self._make_request("POST", ENDPOINT_CONVERSATION, self._image_payload(prompt, data_uris, model, user_id))

    async def health_check(self) -> Dict[str, Any]:
        return await self._make_request("GET", ENDPOINT_HEALTH)

    async def get_models(self) -> Dict[str, Any]:
        return await self._make_request("GET", ENDPOINT_MODELS)

    async def _encode_image(self, image: str) -> str:
        try:
            if is_remote_url(image):
                response = await self._image_client.get(image)
                response.raise_for_status()
                image_data = response.content
            else:
                image_data = await asyncio.to_thread(read_local_image, image)
        except ValidationError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("图片处理失败 %s: %s", image, exc)
            raise XiangxinAIError(f"Failed to process image: {image}: {exc}") from exc
        return to_data_uri(image_data)

    async def _make_request(self, method: str, endpoint: str, data: Optional[Dict[str, Any]] = None) -> Any:
        for attempt in range(self._config.max_retries + 1):
            logger.debug("异步发送请求 %s %s attempt=%d", method, endpoint, attempt)
            try:
                response = await self._client.request(method, endpoint, json=data)
                return self._handle_response(endpoint, response.status_code, response.text, attempt)
            except httpx.TimeoutException as exc:
                failure = _RetryableFailure(RETRY_DELAY, XiangxinAIError("Request timeout"), exc)
            except httpx.RequestError as exc:
                failure = _RetryableFailure(RETRY_DELAY, NetworkError("Connection error"), exc)
            except Exception as exc:  # noqa: BLE001
                failure = self._next_failure(exc)
            self._check_exhausted(failure, method, endpoint, attempt)
            await asyncio.sleep(failure.delay)
        raise XiangxinAIError("Request failed")

    async def aclose(self) -> None:
        await self._client.aclose()
        await self._image_client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()


__all__ = [
    "XiangxinAI",
    "AsyncXiangxinAI",
    "DEFAULT_TEXT_MODEL",
    "DEFAULT_VISION_MODEL",
    "rate_limit_delay",
]
