from casamatch.config import Settings, normalize_phone


def test_defaults():
    s = Settings(_env_file=None)
    assert s.MATCH_SCORE_THRESHOLD == 70
    assert s.ANTI_DUP_WINDOW_DAYS == 30
    assert s.OUTREACH_ENABLED is False
    assert s.outreach_allowlist == frozenset()


def test_allowlist_is_normalized():
    s = Settings(_env_file=None, OUTREACH_ALLOWLIST="+39 333 1234567, 393471112233,,")
    assert s.outreach_allowlist == frozenset({"393331234567", "393471112233"})


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("MATCH_SCORE_THRESHOLD", "80")
    monkeypatch.setenv("OUTREACH_ENABLED", "true")
    monkeypatch.setenv("INGESTION_SOURCES", "Immobiliare,stub_json")
    s = Settings(_env_file=None)
    assert s.MATCH_SCORE_THRESHOLD == 80
    assert s.OUTREACH_ENABLED is True
    assert s.ingestion_sources == ["immobiliare", "stub_json"]


def test_normalize_phone():
    assert normalize_phone("+39 333 123 4567") == "393331234567"
    assert normalize_phone(None) == ""
