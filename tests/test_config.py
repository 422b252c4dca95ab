"""Tests for store configuration."""

import pytest

from keepsake.config import (
    CONFIG_FILENAME, DEFAULT_SEARCH_URL_TEMPLATE, Limits, ProviderConfig, StoreConfig,
    detect_default_embedding, get_default_store_path, load_config,
    load_or_create_config, save_config,
)


@pytest.fixture
def clean_env(monkeypatch):
    for var in ("GEMINI_API_KEY", "GOOGLE_API_KEY", "OLLAMA_BASE_URL", "KEEPSAKE_STORE_PATH"):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


class TestDefaults:

    def test_limits(self):
        limits = Limits()
        assert limits.max_profiles == 5
        assert limits.search_limit == 10
        assert limits.timeout > 0

    def test_gemini_when_key_present(self, clean_env):
        clean_env.setenv("GEMINI_API_KEY", "k")
        emb = detect_default_embedding()
        assert emb.name == "gemini"
        assert emb.params["dimension"] == 768

    def test_ollama_when_base_url_set(self, clean_env):
        clean_env.setenv("OLLAMA_BASE_URL", "http://localhost:11434")
        assert detect_default_embedding().name == "ollama"

    def test_local_fallback(self, clean_env):
        assert detect_default_embedding().name == "sentence-transformers"

    def test_store_path_from_env(self, clean_env, tmp_path):
        clean_env.setenv("KEEPSAKE_STORE_PATH", str(tmp_path / "ks"))
        assert get_default_store_path() == (tmp_path / "ks").resolve()

    def test_store_path_default(self, clean_env):
        assert get_default_store_path().name == ".keepsake"


class TestPersistence:

    def test_create_then_load(self, clean_env, tmp_path):
        created = load_or_create_config(tmp_path)
        assert (tmp_path / CONFIG_FILENAME).exists()

        loaded = load_or_create_config(tmp_path)
        assert loaded.embedding == created.embedding
        assert loaded.limits == created.limits
        assert loaded.search_url_template == DEFAULT_SEARCH_URL_TEMPLATE

    def test_round_trip(self, tmp_path):
        config = StoreConfig(
            path=tmp_path,
            embedding=ProviderConfig("ollama", {"model": "nomic-embed-text", "dimension": 768}),
            limits=Limits(max_profiles=3, search_limit=4, timeout=2.5, max_workers=2),
            search_url_template="https://example.com/?q={query}",
            auth_tokens={"secret": "alice"},
        )
        save_config(config)
        loaded = load_config(tmp_path)
        assert loaded.embedding == config.embedding
        assert loaded.limits == config.limits
        assert loaded.search_url_template == "https://example.com/?q={query}"
        assert loaded.auth_tokens == {"secret": "alice"}
        assert loaded.embedding_dimension == 768

    def test_missing_config(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)

    def test_newer_version_rejected(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text('[store]\nversion = 99\n')
        with pytest.raises(ValueError, match="newer"):
            load_config(tmp_path)

    def test_bad_limits_rejected(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text('[limits]\nmax_profiles = "many"\n')
        with pytest.raises(ValueError, match="limits"):
            load_config(tmp_path)

    def test_tokens_must_be_a_table(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text('[auth]\ntokens = ["a"]\n')
        with pytest.raises(ValueError, match="tokens"):
            load_config(tmp_path)

    def test_minimal_file_gets_defaults(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text('[embedding]\nname = "sentence-transformers"\n')
        config = load_config(tmp_path)
        assert config.limits == Limits()
        assert config.backend == "local"
        assert config.embedding_dimension == 768
