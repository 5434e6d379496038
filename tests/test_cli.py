"""Tests for the region_sync command line."""

import json

import pytest

import region_sync.__main__ as cli
from region_sync.__main__ import format_cards, main
from region_sync.cards import Card


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep the CLI from replacing the test run's root handlers."""
    monkeypatch.setattr(cli, "setup_logging", lambda verbose=False, json_output=False: None)


class TestPaths:

    def test_default_paths(self, capsys):
        assert main(["paths"]) == 0
        out = capsys.readouterr().out
        assert "area_one: matches/match_1/areas/area_one" in out
        assert "area_two: matches/match_1/areas/area_two" in out

    def test_custom_match_and_region(self, capsys):
        assert main(["paths", "--match", "m9", "--region", "discard"]) == 0
        assert capsys.readouterr().out.strip() == "discard: matches/m9/areas/discard"

    def test_bad_template(self, capsys):
        assert main(["paths", "--template", "matches/{match_id}"]) == 1
        assert "region" in capsys.readouterr().err


class TestDemo:

    def test_memory_demo_converges(self, capsys):
        assert main(["demo"]) == 0
        out = capsys.readouterr().out
        assert "Converged." in out
        assert "area_one: [9H]" in out

    def test_demo_json(self, capsys):
        assert main(["demo", "--json"]) == 0
        out = capsys.readouterr().out
        status = json.loads(out[out.index("{"):out.rindex("}") + 1])
        assert status["player_one"]["regions"]["area_one"]["stats"]["writes_issued"] == 1
        assert status["player_two"]["regions"]["area_one"]["stats"]["writes_issued"] == 1

    def test_file_demo_converges(self, tmp_path, capsys):
        assert main(["demo", "--root", str(tmp_path)]) == 0
        assert "Converged." in capsys.readouterr().out
        assert (tmp_path / "matches/match_1/areas/area_one.json").exists()


class TestShow:

    def write(self, root, path, record):
        target = root / f"{path}.json"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(record) if not isinstance(record, str) else record)

    def test_show_cards(self, tmp_path, capsys):
        self.write(tmp_path, "matches/m1/areas/area_one",
                   {"elements": [{"suit": "hearts", "rank": 7}, {"suit": "spades", "rank": 12}]})
        assert main(["show", "--root", str(tmp_path)]) == 0
        assert "matches/m1/areas/area_one: [7H, QS]" in capsys.readouterr().out

    def test_show_json_with_bad_slot(self, tmp_path, capsys):
        self.write(tmp_path, "matches/m1/areas/area_one", {"elements": []})
        self.write(tmp_path, "matches/m1/areas/area_two", "{broken")
        assert main(["show", "--root", str(tmp_path), "--json"]) == 1
        result = json.loads(capsys.readouterr().out)
        assert result["matches/m1/areas/area_one"] == []
        assert "error" in result["matches/m1/areas/area_two"]

    def test_show_filters_match(self, tmp_path, capsys):
        self.write(tmp_path, "matches/m1/areas/area_one", {"elements": []})
        self.write(tmp_path, "matches/m2/areas/area_one", {"elements": []})
        assert main(["show", "--root", str(tmp_path), "--match", "m2", "--json"]) == 0
        assert list(json.loads(capsys.readouterr().out)) == ["matches/m2/areas/area_one"]

    def test_missing_root(self, tmp_path, capsys):
        assert main(["show", "--root", str(tmp_path / "nope")]) == 1


class TestMisc:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_format_cards(self):
        assert format_cards([Card("hearts", 7), Card("diamonds", 10)]) == "[7H, 10D]"
