from unittest.mock import AsyncMock, patch

import pytest

from rxbridge import cli
from rxbridge.core.config import settings
from rxbridge.core.exceptions import ResourceNotFoundException, StartupFailureException


@pytest.fixture(autouse=True)
def _quiet_settings(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test-not-used")


@pytest.mark.parametrize("argv", [[], ["p1"]])
def test_missing_arguments_is_usage_error(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(argv)
    assert exc_info.value.code != 0


def test_missing_api_key_refuses_to_start(monkeypatch, capsys):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")

    assert cli.main(["p1", "cough"]) == 1
    assert "OPENAI_API_KEY" in capsys.readouterr().err


def test_symptom_words_are_joined_and_draft_printed(capsys):
    draft = AsyncMock(return_value="Paracetamol 500 mg")
    with patch("rxbridge.services.orchestrator.draft_via_server", draft):
        assert cli.main(["p1", "headache,", "dizziness"]) == 0

    draft.assert_awaited_once_with("p1", "headache, dizziness")
    out = capsys.readouterr().out
    assert "=== Prescription ===" in out
    assert "Paracetamol 500 mg" in out


@pytest.mark.parametrize("error", [
    ResourceNotFoundException(msg="Patient not found"),
    StartupFailureException(msg="Could not start server process"),
])
def test_failures_exit_non_zero(capsys, error):
    with patch("rxbridge.services.orchestrator.draft_via_server", AsyncMock(side_effect=error)):
        assert cli.main(["p1", "cough"]) == 1
    assert error.slug in capsys.readouterr().err
