from hookbin.config import Settings, get_settings


class TestSettings:
    """Environment driven configuration"""

    def test_defaults(self, monkeypatch):
        for name in ("PORT", "DATA_DIR", "NAMESPACES", "MAX_BODY_BYTES"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.PORT == 18800
        assert settings.DATA_DIR == "./data"
        assert settings.MAX_BODY_BYTES == 100 * 1024 * 1024
        assert settings.namespace_list == []

    def test_namespace_list_is_trimmed_and_deduplicated(self):
        settings = Settings(NAMESPACES=" stripe, github,,stripe ,  ", _env_file=None)
        assert settings.namespace_list == ["stripe", "github"]

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("NAMESPACES", "one,two")
        monkeypatch.setenv("PORT", "9000")
        monkeypatch.setenv("MAX_BODY_BYTES", "2048")
        settings = get_settings()
        assert settings.namespace_list == ["one", "two"]
        assert settings.PORT == 9000
        assert settings.MAX_BODY_BYTES == 2048
        assert get_settings() is settings
