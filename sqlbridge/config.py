import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

@dataclass
class Config:
    """Configuration for the sqlbridge server, client and chat agent."""
    # HTTP server
    host: str = os.getenv("SQLBRIDGE_HOST", "127.0.0.1")
    port: int = int(os.getenv("SQLBRIDGE_PORT", "3001"))
    sse_path: str = "/sse"
    message_path: str = "/message"
    sse_ping_interval: float = float(os.getenv("SQLBRIDGE_SSE_PING_INTERVAL", "15"))
    cors_origins: str = os.getenv("SQLBRIDGE_CORS_ORIGINS", "*")
    server_name: str = "sqlbridge"
    server_version: str = "0.1.0"
    log_level: str = os.getenv("SQLBRIDGE_LOG_LEVEL", "INFO")

    # Client side
    server_url: str = os.getenv("SQLBRIDGE_SERVER_URL", "http://localhost:3001/sse")
    max_tool_rounds: int = int(os.getenv("SQLBRIDGE_MAX_TOOL_ROUNDS", "1"))
    max_result_chars: int = int(os.getenv("SQLBRIDGE_MAX_RESULT_CHARS", "50000"))

    # Gemini
    google_api_key: Optional[str] = os.getenv("GOOGLE_API_KEY")
    google_cloud_project: Optional[str] = os.getenv("GOOGLE_CLOUD_PROJECT")
    google_cloud_location: Optional[str] = os.getenv("GOOGLE_CLOUD_LOCATION")
    model_name: str = os.getenv("SQLBRIDGE_MODEL", "gemini-2.5-flash")

    # Snowflake Credentials
    snowflake_user: Optional[str] = os.getenv("SNOWFLAKE_USER")
    snowflake_password: Optional[str] = os.getenv("SNOWFLAKE_PASSWORD")
    snowflake_account: Optional[str] = os.getenv("SNOWFLAKE_ACCOUNT")
    snowflake_warehouse: Optional[str] = os.getenv("SNOWFLAKE_WAREHOUSE")
    snowflake_database: Optional[str] = os.getenv("SNOWFLAKE_DATABASE")
    snowflake_schema: Optional[str] = os.getenv("SNOWFLAKE_SCHEMA")
    snowflake_role: Optional[str] = os.getenv("SNOWFLAKE_ROLE")

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @classmethod
    def from_env(cls) -> "Config":
        return cls()
