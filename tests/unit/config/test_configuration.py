from agent_api.config.configuration import load_settings
from agent_api.config.loader import get_bool_env, get_int_env, get_str_env


def test_env_helpers(monkeypatch):
    monkeypatch.setenv("SAMPLE_STR", "  value  ")
    monkeypatch.setenv("SAMPLE_BOOL", "Yes")
    monkeypatch.setenv("SAMPLE_INT", "twelve")

    assert get_str_env("SAMPLE_STR") == "value"
    assert get_str_env("SAMPLE_MISSING", "fallback") == "fallback"
    assert get_bool_env("SAMPLE_BOOL") is True
    assert get_bool_env("SAMPLE_MISSING", True) is True
    assert get_int_env("SAMPLE_INT", 12) == 12


def test_load_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("HISTORY_DB_PATH", "/tmp/history/test.db")
    monkeypatch.setenv("STRICT_THREAD_TOKENS", "true")
    monkeypatch.setenv("LLM_PROVIDER", "FAKE")
    monkeypatch.setenv("FAKE_LLM_RESPONSES", "one || two")
    monkeypatch.setenv("ALLOWED_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("PS_AZURE_AI_FOUNDRY_OPEN_AI_ENDPOINT", "https://example.openai.azure.com")
    monkeypatch.setenv("MATH_AGENT_INSTRUCTIONS", "Only answer with numbers.")

    settings = load_settings()

    assert settings.history_db_path == "/tmp/history/test.db"
    assert settings.strict_thread_tokens is True
    assert settings.llm_provider == "fake"
    assert settings.fake_responses == ("one", "two")
    assert settings.allowed_origins == ("http://a.test", "http://b.test")
    assert settings.azure_endpoint == "https://example.openai.azure.com"
    assert settings.agent("math").instructions == "Only answer with numbers."
    assert settings.agent("orchestrator").name == "OrchestratorAgent"
    assert settings.agent("unknown") is None
