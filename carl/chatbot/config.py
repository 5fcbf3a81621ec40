# chatbot/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import yaml
from dotenv import load_dotenv
from rich.logging import RichHandler

log = logging.getLogger("chatbot.config")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CONFIG_PATH = PROJECT_ROOT / "config" / "app.yaml"


def _load_config(path: Optional[Path] = None) -> Dict:
    path = Path(path or os.getenv("CARL_CONFIG") or CONFIG_PATH)
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    log.debug("no config file at %s, using environment only", path)
    return {}


@dataclass(frozen=True)
class Settings:
    canvas_base_url: Optional[str] = None
    canvas_api_token: Optional[str] = None
    canvas_student_id: str = "self"
    canvas_timeout: float = 30.0

    # unset base URL means "no LLM": keyword intent detection only
    llm_base_url: Optional[str] = None
    llm_model: Optional[str] = None
    llm_api_key: str = "ollama"
    llm_timeout: float = 30.0
    llm_discovery_timeout: float = 5.0

    port: int = 8080
    lockout_seconds: float = 300.0
    reset_seconds: float = 600.0
    log_level: str = "INFO"


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Read config/app.yaml, then let environment variables (and .env) win.
    """
    load_dotenv()
    cfg = _load_config(path)
    canvas = cfg.get("canvas") or {}
    llm = cfg.get("llm") or {}
    server = cfg.get("server") or {}
    guard = cfg.get("guardrails") or {}

    base_url = os.getenv("CANVAS_BASE_URL") or canvas.get("base_url")
    llm_url = os.getenv("OLLAMA_URL") or llm.get("base_url")

    # OLLAMA_TIMEOUT is in milliseconds, the yaml value in seconds
    env_timeout = os.getenv("OLLAMA_TIMEOUT")
    llm_timeout = int(env_timeout) / 1000 if env_timeout else float(llm.get("timeout", 30))

    return Settings(
        canvas_base_url=base_url.rstrip("/") if base_url else None,
        canvas_api_token=os.getenv("CANVAS_API_TOKEN") or canvas.get("api_token"),
        canvas_student_id=str(os.getenv("CANVAS_STUDENT_ID") or canvas.get("student_id") or "self"),
        canvas_timeout=float(os.getenv("CANVAS_TIMEOUT") or canvas.get("timeout", 30)),
        llm_base_url=llm_url.rstrip("/") if llm_url else None,
        llm_model=os.getenv("LLM_MODEL") or llm.get("model"),
        llm_api_key=os.getenv("OPENAI_API_KEY") or llm.get("api_key") or "ollama",
        llm_timeout=llm_timeout,
        llm_discovery_timeout=float(llm.get("discovery_timeout", 5)),
        port=int(os.getenv("PORT") or server.get("port", 8080)),
        lockout_seconds=float(guard.get("lockout_seconds", 300)),
        reset_seconds=float(guard.get("reset_seconds", 600)),
        log_level=(os.getenv("LOG_LEVEL") or cfg.get("log_level") or "INFO").upper(),
    )


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
