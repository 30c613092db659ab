"""
HTTP-клиент удаленного хранилища прогресса (конверт {success, data|error})
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from shared.models import ProgressUpdateRequest, QuestionProgressRequest

logger = logging.getLogger(__name__)

class RemoteProgressClient:
    """Клиент API прогресса с Bearer-токеном"""

    def __init__(self, base_url: str, api_token: Optional[str] = None, timeout: int = 30,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = base_url.rstrip('/')
        self.api_token = api_token
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.api_token)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json"
                }
            )
            self._owns_session = True
        return self._session

    def _headers(self) -> Dict[str, str]:
        if self.api_token:
            return {"Authorization": f"Bearer {self.api_token}"}
        return {}

    async def request(self, method: str, endpoint: str, payload: Optional[Dict[str, Any]] = None,
                      params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Выполнить запрос; сетевые ошибки превращаются в {success: false}"""
        url = f"{self.base_url}{endpoint}"
        session = await self._get_session()

        try:
            async with session.request(method, url, json=payload, params=params,
                                       headers=self._headers()) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = None

                if response.status == 401:
                    logger.warning("🔑 Токен отклонен удаленным хранилищем, требуется повторный вход")
                    self.api_token = None
                    return {"success": False, "error": "Authentication required"}

                if response.status >= 400:
                    error = data.get("error") if isinstance(data, dict) else None
                    logger.warning(f"⚠️ {method} {endpoint} -> HTTP {response.status}: {error}")
                    return {"success": False, "error": error or f"HTTP {response.status}"}

                if not isinstance(data, dict):
                    return {"success": False, "error": "Malformed response"}

                return data

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"📡 {method} {endpoint} недоступен: {e!r}")
            return {"success": False, "error": str(e) or e.__class__.__name__}

    async def get_progress(self, track_id: Optional[str] = None) -> Dict[str, Any]:
        params = {"track_id": track_id} if track_id else None
        return await self.request("GET", "/progress", params=params)

    async def update_progress(self, entry: ProgressUpdateRequest) -> Dict[str, Any]:
        return await self.request("POST", "/progress", payload=entry.model_dump())

    async def get_stats(self) -> Dict[str, Any]:
        return await self.request("GET", "/stats")

    async def track_question_progress(self, entry: QuestionProgressRequest) -> Dict[str, Any]:
        return await self.request("POST", "/questions/progress", payload=entry.model_dump())

    async def is_available(self) -> bool:
        """Проверка /health; любой ответ 2xx считается доступностью"""
        session = await self._get_session()
        try:
            async with session.get(f"{self.base_url}/health") as response:
                return response.status < 400
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Health check failed: {e!r}")
            return False

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

__all__ = ['RemoteProgressClient']
