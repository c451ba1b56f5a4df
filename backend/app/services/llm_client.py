"""LLM клиент (chat completions) для клинических консультаций."""
from __future__ import annotations

import uuid
from typing import Any

import httpx

from app.core.config import LLMProvider, settings
from app.core.errors import UpstreamError
from app.core.logging import logger


class LLMClient:
    """Клиент для вызова chat-completions API."""

    def __init__(
        self,
        provider: LLMProvider | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        top_p: float | None = None,
        timeout_sec: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Инициализация LLM клиента.

        Args:
            provider: Провайдер LLM
            base_url: Базовый URL API
            api_key: API ключ (для local не обязателен)
            model: Модель LLM
            temperature: Температура
            max_tokens: Ограничение длины ответа
            top_p: Nucleus sampling
            timeout_sec: Таймаут в секундах
            transport: Транспорт httpx (подменяется в тестах)
        """
        self.provider = provider or settings.llm_provider
        self.base_url = base_url or settings.llm_base_url
        self.api_key = api_key or settings.llm_api_key
        self.model = model or settings.llm_model
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.top_p = top_p if top_p is not None else settings.llm_top_p
        self.timeout_sec = timeout_sec or settings.llm_timeout_sec
        self._transport = transport

        if not self.base_url:
            raise ValueError("LLM base_url не задан")
        if not self.api_key and self.provider != LLMProvider.LOCAL:
            raise ValueError("LLM api_key не задан")

        # Для openai_compatible "/v1/..." добавляется в _call_openai_compatible,
        # поэтому убираем "/v1" из base_url, чтобы не получить "/v1/v1/chat/completions".
        self.base_url = self.base_url.rstrip("/")
        if self.provider == LLMProvider.OPENAI_COMPATIBLE and self.base_url.endswith("/v1"):
            self.base_url = self.base_url[: -len("/v1")]

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        request_id: str | None = None,
    ) -> str:
        """
        Отправляет пару system/user сообщений и возвращает текст ответа.

        Raises:
            UpstreamError: при HTTP/сетевой ошибке или пустом ответе
        """
        request_id = request_id or str(uuid.uuid4())
        logger.info(
            f"[LLM] Запрос (request_id={request_id}, provider={self.provider.value}, "
            f"model={self.model}, chars={len(user_message)})"
        )

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ]

        try:
            if self.provider == LLMProvider.AZURE_OPENAI:
                response_data = await self._call_azure_openai(messages, request_id)
            elif self.provider == LLMProvider.OPENAI_COMPATIBLE:
                response_data = await self._call_openai_compatible(messages, request_id)
            elif self.provider == LLMProvider.LOCAL:
                response_data = await self._call_local(messages, request_id)
            else:
                raise ValueError(f"Неподдерживаемый провайдер: {self.provider}")
        except httpx.HTTPStatusError as e:
            status = e.response.status_code if e.response is not None else None
            logger.error(f"[LLM] HTTP {status} (request_id={request_id}): {e}")
            raise UpstreamError(
                "LLM request failed", details={"status": status, "request_id": request_id}
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"[LLM] Сетевая ошибка (request_id={request_id}): {e}")
            raise UpstreamError(
                "LLM request failed", details={"request_id": request_id}
            ) from e

        choices = response_data.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content") or ""
        content = str(content).strip()
        if not content:
            logger.error(f"[LLM] Пустой ответ от LLM (request_id={request_id})")
            raise UpstreamError("Empty response from LLM", details={"request_id": request_id})

        logger.info(f"[LLM] Ответ получен (request_id={request_id}, chars={len(content)})")
        return content

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_sec, transport=self._transport)

    async def _call_azure_openai(
        self, messages: list[dict[str, str]], request_id: str
    ) -> dict[str, Any]:
        """Вызов Azure OpenAI API."""
        url = f"{self.base_url}/openai/deployments/{self.model}/chat/completions"
        headers = {
            "api-key": self.api_key or "",
            "Content-Type": "application/json",
        }
        payload = {
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
        }

        async with self._client() as client:
            response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            return response.json()

    async def _call_openai_compatible(
        self, messages: list[dict[str, str]], request_id: str
    ) -> dict[str, Any]:
        """Вызов OpenAI-compatible API (Groq, OpenAI, vLLM...)."""
        url = f"{self.base_url}/v1/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
        }

        async with self._client() as client:
            response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            return response.json()

    async def _call_local(
        self, messages: list[dict[str, str]], request_id: str
    ) -> dict[str, Any]:
        """
        Вызов локального LLM API.

        Сначала Ollama (`POST /api/chat`), ответ нормализуется к OpenAI-like `choices`.
        Если endpoint недоступен, пробуем OpenAI-compatible `/v1/chat/completions`
        (LM Studio, vLLM и т.п.).
        """
        ollama_url = f"{self.base_url}/api/chat"
        headers = {"Content-Type": "application/json"}
        ollama_payload = {
            "model": self.model,
            "messages": messages,
            "options": {"temperature": self.temperature, "top_p": self.top_p},
            "stream": False,
        }

        async with self._client() as client:
            try:
                response = await client.post(ollama_url, headers=headers, json=ollama_payload)
                response.raise_for_status()
                result = response.json()
                if "message" in result:
                    return {
                        "choices": [
                            {"message": {"content": result["message"].get("content", "")}}
                        ]
                    }
                return result
            except httpx.HTTPStatusError as e:
                status = e.response.status_code if e.response is not None else None
                logger.warning(
                    f"[LLM] LOCAL endpoint /api/chat недоступен (status={status}), "
                    f"пробуем /v1/chat/completions (request_id={request_id})"
                )

            oa_headers = {"Content-Type": "application/json"}
            if self.api_key:
                oa_headers["Authorization"] = f"Bearer {self.api_key}"
            oa_payload = {
                "model": self.model,
                "messages": messages,
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
            }

            response2 = await client.post(
                f"{self.base_url}/v1/chat/completions", headers=oa_headers, json=oa_payload
            )
            response2.raise_for_status()
            return response2.json()
