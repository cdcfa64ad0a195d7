from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_prefix": "AMM_ADMIN_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    # Solana
    rpc_url: str = "http://127.0.0.1:8899"
    program_id: str = "4sRbFuajHVG181psKiK7G2JBSzbcvVD9RBVbo72DE9TQ"
    keypair_path: str = "~/.config/solana/id.json"
    commitment: Literal["processed", "confirmed", "finalized"] = "processed"
    confirm_timeout_seconds: float = 30.0
    confirm_poll_seconds: float = 0.5

    # Refuse to build an initialize transaction when the config account exists
    preflight_check: bool = False

    # Logging
    log_level: str = "WARNING"
    log_format: Literal["json", "text"] = "text"


settings = Settings()
