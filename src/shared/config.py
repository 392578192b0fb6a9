"""全局配置加载与强类型定义。
该模块负责读取 config/ 目录下的 YAML 文件，并映射为 Pydantic 模型。
"""
from __future__ import annotations

import functools
import pathlib
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 定位到项目根目录
BASE_DIR = pathlib.Path(__file__).resolve().parents[2]
CONFIG_DIR = BASE_DIR / "config"

def _load_yaml(filename: str) -> Dict[str, Any]:
    """辅助函数：安全加载 YAML 文件"""
    path = CONFIG_DIR / filename
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}

# --- 1. API Config Model ---
class ApiConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    enable_docs: bool = True

# --- 2. Data Source Model ---
class FootballDataOrgConfig(BaseModel):
    base_url: str = "https://api.football-data.org/v4"
    api_key: str = ""
    enabled: bool = True
    # 上游请求超时（秒），固定 10s，不做重试
    timeout_seconds: float = 10.0

class DataSourceConfig(BaseModel):
    football_data_org: FootballDataOrgConfig = Field(default_factory=FootballDataOrgConfig)

# --- 3. Cache Config Model ---
class CacheConfig(BaseModel):
    backend: Literal["memory", "redis"] = "memory"
    url: Optional[str] = None  # redis://host:6379/0
    namespace: str = "football:"
    league_ttl_seconds: int = 600

class ServiceConfig(BaseModel):
    api: ApiConfig = Field(default_factory=ApiConfig)
    data_source: DataSourceConfig = Field(default_factory=DataSourceConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    # 球队展示名映射：上游名称 -> 展示名称（仅影响展示，不影响身份）
    team_display_names: Dict[str, str] = Field(default_factory=dict)

# --- 全局 Settings 聚合 ---
class Settings(BaseSettings):
    app_name: str = "Football Predictor"
    app_version: str = "0.1.0"
    environment: str = "dev"

    # 也可以通过环境变量 PREDICTOR_FOOTBALL_DATA_API_KEY 注入
    football_data_api_key: Optional[str] = None

    service: ServiceConfig = Field(default_factory=lambda: ServiceConfig(**_load_yaml("service.yaml")))

    model_config = SettingsConfigDict(env_prefix="PREDICTOR_")

    @property
    def api_key(self) -> str:
        """环境变量优先，其次 YAML 配置"""
        return self.football_data_api_key or self.service.data_source.football_data_org.api_key

@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """获取全局单例配置。"""
    return Settings()
