from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class PNodeSettings(BaseModel):
    seed_nodes: list[str] = [
        "173.212.203.145",
        "173.212.220.65",
        "161.97.97.41",
        "192.190.136.36",
        "192.190.136.37",
        "192.190.136.38",
        "192.190.136.28",
        "192.190.136.29",
        "207.244.255.1",
    ]
    rpc_port: int = 6000
    rpc_path: str = "/rpc"
    request_timeout: float = 3.0  # Per-call timeout for pNode JSON-RPC
    seed_retry_attempts: int = 2


class RedisSettings(BaseModel):
    host: str = "localhost"
    port: int = 6379
    db: int = 0


class SidecarSettings(BaseModel):
    sync_pods_interval: int = 60
    redis_keys: dict[str, str] = {
        "pods": "pnodes:pods",
    }
    snapshot_ttl: int = 300  # Cached pod list expires if syncing stalls
    host: str = "127.0.0.1"
    port: int = 9001
    adapter: str = "http"
    request_timeout: float = 10.0  # Timeout for HTTP requests to sidecar

    @property
    def base_url(self) -> str:
        return f"{self.adapter}://{self.host}:{self.port}"


class AnalyticsSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 9002
    snapshot_cache_ttl: int = 60
    stats_batch_size: int = 20
    stats_node_limit: int = 50  # Only the first N nodes are enriched for leaderboards
    leaderboard_limit: int = 10

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class Settings(BaseSettings):
    pnode: PNodeSettings = PNodeSettings()
    redis: RedisSettings = RedisSettings()
    sidecar: SidecarSettings = SidecarSettings()
    analytics: AnalyticsSettings = AnalyticsSettings()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter=".",
        extra="ignore",  # Ignore additional env variables in .env
    )


SETTINGS = Settings()
