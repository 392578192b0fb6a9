"""
Football-data.org 上游客户端

职责：
1. 联赛代码 -> 上游 competition id 映射
2. 单次 GET 请求（带 X-Auth-Token 与固定超时）
3. 把所有失败统一转换为 UpstreamError

注意：
- 客户端本身不做重试，重试/退避由调用方负责
- 空响应体或非 JSON 响应体会显式失败，而不是返回部分数据
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional

import httpx
from pydantic import ValidationError

from src.data_pipeline.schemas import ExternalApiResponse, ExternalStandingsResponse
from src.services.config import league_data_config
from src.shared.exceptions import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

Resource = Literal["standings", "matches"]

DEFAULT_BASE_URL = "https://api.football-data.org/v4"
DEFAULT_TIMEOUT_SECONDS = 10.0


def _default_competitions() -> Dict[str, int]:
    return {
        league.code: league.competition_id
        for league in league_data_config.LEAGUES
        if league.competition_id is not None
    }


class FootballDataClient:
    """Football-data.org 数据客户端"""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        competitions: Optional[Dict[str, int]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        enabled: bool = True,
    ):
        self._api_key = api_key
        self._enabled = enabled
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._competitions = competitions if competitions is not None else _default_competitions()
        self._http_client = http_client
        self._owns_client = http_client is None

    # ==================== 生命周期 ====================

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "FootballDataClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ==================== 请求 ====================

    def resolve_competition(self, league_code: str) -> str:
        """联赛代码 -> 上游 competition 标识；未知代码原样透传"""
        competition_id = self._competitions.get(league_code)
        return str(competition_id) if competition_id is not None else league_code

    async def fetch(self, league_code: str, resource: Resource) -> Dict[str, Any]:
        """
        获取某个联赛的原始 JSON 数据

        Args:
            league_code: 联赛代码 (PL, BL1, CL, ...)
            resource: standings | matches

        Returns:
            解析后的 JSON 对象

        Raises:
            ConfigurationError: 数据源已禁用或未配置 API Key
            UpstreamError: 网络错误、超时、非 2xx、响应体为空或格式错误
        """
        if not self._enabled:
            raise ConfigurationError("football-data.org 数据源已禁用 (data_source.football_data_org.enabled=false)")
        if not self._api_key:
            raise ConfigurationError("football-data.org API_KEY 未配置")

        url = f"{self._base_url}/competitions/{self.resolve_competition(league_code)}/{resource}"
        logger.info(f"正在获取联赛 {league_code} 的 {resource} 数据...")

        try:
            response = await self._get_http_client().get(
                url,
                headers={"X-Auth-Token": self._api_key},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"请求超时 {league_code}/{resource}: {e}")
            raise UpstreamError(None, f"Request to upstream timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"网络错误 {league_code}/{resource}: {e}")
            raise UpstreamError(None, f"Upstream request failed: {e}") from e

        if response.status_code == 429:
            logger.warning(f"API 速率限制: {league_code}/{resource}")
        elif response.status_code == 403:
            logger.error("API 认证失败，请检查 API Key")

        if not response.is_success:
            raise UpstreamError(response.status_code, self._error_message(response))

        if not response.content:
            raise UpstreamError(response.status_code, f"Empty response body for {league_code}/{resource}")

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(response.status_code, f"Malformed JSON for {league_code}/{resource}") from e

        if not isinstance(payload, dict):
            raise UpstreamError(response.status_code, f"Unexpected payload type for {league_code}/{resource}")

        return payload

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """优先使用上游返回的 message 字段"""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"HTTP {response.status_code} from upstream"

    async def get_standings(self, league_code: str) -> ExternalStandingsResponse:
        payload = await self.fetch(league_code, "standings")
        try:
            return ExternalStandingsResponse(**payload)
        except ValidationError as e:
            raise UpstreamError(None, f"Malformed standings payload for {league_code}: {e}") from e

    async def get_matches(self, league_code: str) -> ExternalApiResponse:
        payload = await self.fetch(league_code, "matches")
        try:
            return ExternalApiResponse(**payload)
        except ValidationError as e:
            raise UpstreamError(None, f"Malformed matches payload for {league_code}: {e}") from e
