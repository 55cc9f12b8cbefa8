"""Tests for audioswitch.ini loading."""
from audioswitch.config import Settings, load_settings


def test_missing_file_gives_defaults(tmp_path):
    assert load_settings(str(tmp_path / "absent.ini")) == Settings()


def test_values_are_read(tmp_path):
    ini = tmp_path / "audioswitch.ini"
    ini.write_text(
        "[audioswitch]\n"
        "cache_ttl = 5\n"
        "max_retry_attempts = 4\n"
        "retry_base_delay = 0\n"
        "switching_target = 2.5\n"
        "powershell = pwsh\n",
        encoding="utf-8",
    )

    s = load_settings(str(ini))

    assert s.cache_ttl == 5.0
    assert s.max_retry_attempts == 4
    assert s.retry_base_delay == 0.0
    assert s.switching_target == 2.5
    assert s.listing_target == Settings().listing_target
    assert s.powershell == "pwsh"


def test_invalid_values_keep_defaults(tmp_path):
    ini = tmp_path / "audioswitch.ini"
    ini.write_text(
        "[audioswitch]\n"
        "cache_ttl = soon\n"
        "max_retry_attempts = 0\n"
        "retry_base_delay = -1\n"
        "powershell = 100%\n",
        encoding="utf-8",
    )

    s = load_settings(str(ini))

    assert s.cache_ttl == Settings().cache_ttl
    assert s.max_retry_attempts == Settings().max_retry_attempts
    assert s.retry_base_delay == Settings().retry_base_delay
    assert s.powershell == "100%"


def test_other_sections_are_ignored(tmp_path):
    ini = tmp_path / "audioswitch.ini"
    ini.write_text("[something_else]\ncache_ttl = 1\n", encoding="utf-8")
    assert load_settings(str(ini)) == Settings()
