from __future__ import annotations

import scripts.cache_cli as cache_cli
import scripts.export_stats as export_stats
from wrapped.core.config import settings
from wrapped.devops.cache import FileResponseCache
from wrapped.services.export import load_stats
from wrapped.services.stats import StatsService


def test_cache_cli_stats_and_clear(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(settings, "cache_backend", "file")
    monkeypatch.setattr(settings, "cache_path", str(tmp_path))
    cache = FileResponseCache(tmp_path)
    cache.set("acme/_apis/projects", {"api-version": "7.0"}, {"value": []})
    cache.set("acme/Web/_apis/git/repositories", {"api-version": "7.0"}, {"value": []})

    assert cache_cli.main(["stats"]) == 0
    output = capsys.readouterr().out
    assert "Entries:    2" in output
    assert str(tmp_path) in output

    assert cache_cli.main(["clear"]) == 0
    assert "Removed 2 cache entries." in capsys.readouterr().out
    assert list(tmp_path.glob("*.json")) == []


def test_cache_cli_without_cache(monkeypatch, capsys):
    monkeypatch.setattr(settings, "cache_backend", "off")

    assert cache_cli.main(["stats"]) == 0
    assert "keeps no entries" in capsys.readouterr().out


def _configure(monkeypatch, **overrides) -> None:
    values = {"organization": "acme", "projects": "Web", "project": None, "repository": "shop", "pat": "pat", "year": 2024}
    values.update(overrides)
    for name, value in values.items():
        monkeypatch.setattr(settings, name, value)


def test_export_writes_stats_document(tmp_path, monkeypatch, fake_devops, payloads):
    _configure(monkeypatch)
    fake_devops.commits[("Web", "shop", "master")] = [payloads.commit("c1"), payloads.commit("c2", "2024-03-05T11:00:00Z")]
    output = tmp_path / "out" / "stats.json"

    code = export_stats.main(["--output", str(output)], service=StatsService(fake_devops.factory()))

    assert code == 0
    stats = load_stats(output)
    assert stats.meta.organization == "acme"
    assert stats.commits.total == 2
    assert stats.commits.longest_streak == 2
    assert stats.commits.by_hour[11] == 1
    assert '"pullRequests"' in output.read_text(encoding="utf-8")


def test_export_fails_cleanly_on_missing_configuration(tmp_path, monkeypatch, fake_devops):
    _configure(monkeypatch, organization=None)

    code = export_stats.main(["--output", str(tmp_path / "stats.json")], service=StatsService(fake_devops.factory()))

    assert code == 1
    assert not (tmp_path / "stats.json").exists()
    assert fake_devops.requests == []
