import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

@dataclass
class Config:
    """Configuration for the Clinic Analytics Agent."""
    google_api_key: Optional[str] = os.getenv("GOOGLE_API_KEY")
    google_cloud_project: Optional[str] = os.getenv("GOOGLE_CLOUD_PROJECT")
    google_cloud_location: Optional[str] = os.getenv("GOOGLE_CLOUD_LOCATION")

    # Gemini model settings
    model_name: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.3"))

    # Conversation loop: model <-> tool round-trips before a forced answer
    max_tool_rounds: int = int(os.getenv("AGENT_MAX_TOOL_ROUNDS", "10"))

    # Hard cap on rows returned by query_table
    query_max_rows: int = int(os.getenv("QUERY_MAX_ROWS", "100"))

    # Snowflake Credentials
    snowflake_user: Optional[str] = os.getenv("SNOWFLAKE_USER")
    snowflake_password: Optional[str] = os.getenv("SNOWFLAKE_PASSWORD")
    snowflake_account: Optional[str] = os.getenv("SNOWFLAKE_ACCOUNT")
    snowflake_warehouse: Optional[str] = os.getenv("SNOWFLAKE_WAREHOUSE")
    snowflake_database: Optional[str] = os.getenv("SNOWFLAKE_DATABASE")
    snowflake_schema: Optional[str] = os.getenv("SNOWFLAKE_SCHEMA")
    snowflake_role: Optional[str] = os.getenv("SNOWFLAKE_ROLE")

    @classmethod
    def from_env(cls) -> "Config":
        return cls()
