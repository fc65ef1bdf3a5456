"""
CLI tests: exit codes and JSON on stdout.
"""
import json

import pytest
import structlog

from review_engine.cli import main
from review_engine.core.config import get_settings
from review_engine.scoring.redaction import REDACTION_MESSAGE


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    structlog.reset_defaults()


def _write(tmp_path, name: str, payload) -> str:
    path = tmp_path / name
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload))
    return str(path)


class TestScoreCommand:
    def test_scores_facts_file(self, tmp_path, capsys):
        facts = _write(tmp_path, "facts.json", {"clawback": "strong", "noticePeriodDays": 45,
                                                "windDownDefined": True})
        assert main(["score", "--facts", facts]) == 0

        document = json.loads(capsys.readouterr().out)
        assert document["rubricVersion"] == "1.0.0"
        assert 13 <= document["totalScore"] <= 85
        assert any(f["title"] == "Strong clawback provisions" for f in document["findings"])

    def test_redact(self, tmp_path, capsys):
        facts = _write(tmp_path, "facts.json", {"clawback": "weak"})
        assert main(["score", "--facts", facts, "--redact"]) == 0

        document = json.loads(capsys.readouterr().out)
        assert document["findings"]
        assert all(f["description"] == REDACTION_MESSAGE for f in document["findings"])

    def test_redact_ignored_when_redaction_disabled(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setenv("REDACTION_ENABLED", "false")
        get_settings.cache_clear()
        try:
            facts = _write(tmp_path, "facts.json", {"clawback": "weak"})
            assert main(["score", "--facts", facts, "--redact"]) == 0
        finally:
            get_settings.cache_clear()

        document = json.loads(capsys.readouterr().out)
        assert document["findings"]
        assert not any(f["description"] == REDACTION_MESSAGE for f in document["findings"])

    def test_missing_facts_file(self, tmp_path, capsys):
        assert main(["score", "--facts", str(tmp_path / "missing.json")]) == 1
        document = json.loads(capsys.readouterr().out)
        assert document["errors"][0]["code"] == "INVALID_FACTS"

    def test_facts_must_be_object(self, tmp_path, capsys):
        facts = _write(tmp_path, "facts.json", "[1, 2]")
        assert main(["score", "--facts", facts]) == 1
        assert "JSON object" in capsys.readouterr().out

    def test_bad_rubric(self, tmp_path, capsys):
        facts = _write(tmp_path, "facts.json", {})
        rubric = _write(tmp_path, "rubric.json", {"version": "x"})
        assert main(["score", "--facts", facts, "--rubric", rubric]) == 1
        document = json.loads(capsys.readouterr().out)
        assert document["errors"][0]["code"] == "INVALID_RUBRIC"


class TestRubricCheck:
    def _rubric(self, condition: str) -> dict:
        return {
            "version": "check-1",
            "fdvTiers": {"Any": {"label": "Any"}},
            "exchangeTiers": {"Any": {"label": "Any"}},
            "metrics": [{"id": "fees", "name": "Fees", "scoring": [{"condition": condition, "score": 1}]}],
            "ratingScale": [{"min": 0, "grade": "F", "description": "-"}],
        }

    def test_packaged_rubric_is_clean(self, capsys):
        assert main(["rubric", "check"]) == 0
        document = json.loads(capsys.readouterr().out)
        assert document["pass"] is True
        assert document["errors"] == []
        assert document["version"] == "1.0.0"

    def test_syntax_error(self, tmp_path, capsys):
        rubric = _write(tmp_path, "rubric.json", self._rubric("feeStructure = 'x'"))
        assert main(["rubric", "check", "--rubric", rubric]) == 1
        document = json.loads(capsys.readouterr().out)
        assert document["errors"][0]["code"] == "CONDITION_SYNTAX"

    def test_unknown_field(self, tmp_path, capsys):
        rubric = _write(tmp_path, "rubric.json", self._rubric("tokenPrice > 1"))
        assert main(["rubric", "check", "--rubric", rubric]) == 1
        document = json.loads(capsys.readouterr().out)
        assert document["errors"] == [{
            "code": "UNKNOWN_FIELD",
            "condition": "tokenPrice > 1",
            "message": "unknown field 'tokenPrice'",
        }]

    def test_unloadable_rubric(self, tmp_path, capsys):
        rubric = _write(tmp_path, "rubric.json", "{")
        assert main(["rubric", "check", "--rubric", rubric]) == 1
        assert json.loads(capsys.readouterr().out)["pass"] is False


class TestNoCommand:
    def test_prints_help(self, capsys):
        assert main([]) == 0
        assert "score" in capsys.readouterr().out
