import pytest

from carl.chatbot.config import load_settings

ENV_KEYS = (
    "CANVAS_BASE_URL",
    "CANVAS_API_TOKEN",
    "CANVAS_STUDENT_ID",
    "CANVAS_TIMEOUT",
    "OLLAMA_URL",
    "OLLAMA_TIMEOUT",
    "LLM_MODEL",
    "OPENAI_API_KEY",
    "PORT",
    "LOG_LEVEL",
    "CARL_CONFIG",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_yaml_values_are_used(clean_env, tmp_path):
    cfg = tmp_path / "app.yaml"
    cfg.write_text(
        "canvas:\n"
        "  base_url: https://school.instructure.com/\n"
        "  student_id: 4242\n"
        "llm:\n"
        "  base_url: http://localhost:11434\n"
        "  timeout: 12\n"
        "guardrails:\n"
        "  lockout_seconds: 60\n"
        "log_level: debug\n"
    )
    s = load_settings(cfg)
    assert s.canvas_base_url == "https://school.instructure.com"
    assert s.canvas_student_id == "4242"
    assert s.llm_base_url == "http://localhost:11434"
    assert s.llm_timeout == 12.0
    assert s.lockout_seconds == 60.0
    assert s.reset_seconds == 600.0
    assert s.log_level == "DEBUG"


def test_environment_wins_over_yaml(clean_env, tmp_path):
    cfg = tmp_path / "app.yaml"
    cfg.write_text("llm:\n  base_url: http://yaml-host:11434\n  timeout: 12\nserver:\n  port: 9000\n")
    clean_env.setenv("OLLAMA_URL", "http://env-host:11434/")
    clean_env.setenv("OLLAMA_TIMEOUT", "2500")
    clean_env.setenv("PORT", "8123")
    clean_env.setenv("CANVAS_API_TOKEN", "tok")

    s = load_settings(cfg)
    assert s.llm_base_url == "http://env-host:11434"
    # milliseconds in the environment
    assert s.llm_timeout == 2.5
    assert s.port == 8123
    assert s.canvas_api_token == "tok"


def test_missing_file_gives_defaults(clean_env, tmp_path):
    s = load_settings(tmp_path / "nope.yaml")
    assert s.canvas_base_url is None
    assert s.llm_base_url is None
    assert s.canvas_student_id == "self"
    assert s.port == 8080


def test_carl_config_env_points_at_file(clean_env, tmp_path):
    cfg = tmp_path / "other.yaml"
    cfg.write_text("server:\n  port: 7001\n")
    clean_env.setenv("CARL_CONFIG", str(cfg))
    assert load_settings().port == 7001
