"""Agent Editor configuration: settings, sandbox backends, agent defaults."""

from typing import Literal

from pydantic_settings import BaseSettings

Environment = Literal["development", "production", "test"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    environment: Environment = "development"

    # API Keys
    anthropic_api_key: str = ""  # Process-wide default engine credential
    api_key: str = ""  # Empty = auth disabled (dev mode)

    # Database
    database_url: str = "sqlite:///data/agent_editor.db"

    # CORS (comma-separated origins)
    cors_origins: str = "http://localhost:3000"

    # Agent defaults
    default_allowed_tools: list[str] = ["Read", "Write", "Bash", "Glob", "Grep"]
    default_max_turns: int = 10
    max_turns_limit: int = 50
    structured_output_max_attempts: int = 3

    # Skills (markdown prompt fragments)
    skills_dir: str = ""  # Empty = bundled app/skills/library

    # MicroVM sandbox (Sprites). Token set = microVM provider selected.
    sprites_token: str = ""
    sprites_api_url: str = "https://api.sprites.dev"
    sandbox_request_timeout: float = 30.0

    # Container sandbox (Docker)
    docker_sandbox_image: str = "agent-editor-sandbox:latest"
    docker_memory_limit: str = "512m"
    docker_cpu_limit: str = "1.0"
    docker_command_timeout: int = 60  # Per docker CLI call, seconds

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
