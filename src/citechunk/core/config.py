from pathlib import Path
from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Chunking configuration
    CHUNK_PROFILE: str = "default"  # default|code-heavy|faq|large-context|granular
    CHUNK_PROFILE_FILE: Optional[str] = None  # JSON/YAML custom profile override
    CHUNK_WORKERS: int = 1  # Documents chunked in parallel
    CHUNK_SPLIT_OVERSIZED: bool = False  # Split code blocks larger than maxTokens

    # Workspace paths
    CHUNK_OUTPUT_DIR: str = "var/chunks"  # chunks.jsonl + chunks.meta.json

    # Observability
    LOG_FORMAT: str = "auto"  # json|plain|auto

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @classmethod
    def load_config(cls, config_file: Optional[str] = None) -> "Settings":
        """Load settings, letting values from a config file win over the environment."""
        config_data: Dict[str, Any] = {}

        # Find config file
        config_path: Optional[Path]
        if config_file:
            config_path = Path(config_file)
        else:
            # Auto-discover .citechunk.{yaml,yml,toml}
            for ext in ["yaml", "yml", "toml"]:
                config_path = Path(f".citechunk.{ext}")
                if config_path.exists():
                    break
            else:
                config_path = None

        if config_path and config_path.exists():
            if config_path.suffix in [".yaml", ".yml"]:
                import yaml  # type: ignore[import-untyped]

                with open(config_path) as f:
                    config_data = yaml.safe_load(f) or {}
            elif config_path.suffix == ".toml":
                import tomllib

                with open(config_path, "rb") as f:
                    config_data = tomllib.load(f)

        return cls(**config_data)


# Default settings - replaced by load_config() during CLI startup
SETTINGS = Settings()
