"""Tests for the interactive entrypoint."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage

from fakes import SEGMENTER_HOST, ServiceRouter, unreachable
from pageqa import cli
from pageqa.services import pipeline as pipeline_module


@pytest.fixture
def wired(monkeypatch):
    """Route the CLI's pipeline through fake services."""

    state = {"router": ServiceRouter()}
    real_build = pipeline_module.build_pipeline
    model = MagicMock()
    model.ainvoke = AsyncMock(return_value=AIMessage(content="A short answer."))

    def build(settings, **kwargs):
        return real_build(settings, client=state["router"].client(), chat_model=model, **kwargs)

    monkeypatch.setattr(cli, "build_pipeline", build)
    return state


def test_main_runs_with_arguments(wired, capsys):
    code = cli.main(["--url", "https://example.com/article", "--question", "What?"])

    assert code == 0
    out = capsys.readouterr().out
    assert "A short answer." in out
    assert "Workflow completed successfully!" in out


def test_missing_url_and_question_are_prompted(wired, monkeypatch):
    answers = iter(["https://example.com/article", "What is it?"])
    prompts: list[str] = []

    def fake_input(message: str) -> str:
        prompts.append(message)
        return next(answers)

    monkeypatch.setattr("builtins.input", fake_input)

    assert cli.main([]) == 0
    assert prompts == [cli.URL_PROMPT, pipeline_module.QUESTION_PROMPT]


def test_empty_url_is_passed_through_and_fails(wired, monkeypatch, capsys):
    monkeypatch.setattr("builtins.input", lambda message: "")

    assert cli.main([]) == 1
    assert wired["router"].requests == []
    assert "Content fetching failed. Exiting." in capsys.readouterr().out


def test_failed_stage_returns_nonzero(wired, capsys):
    wired["router"] = ServiceRouter({SEGMENTER_HOST: unreachable})

    assert cli.main(["--url", "https://example.com/article", "--question", "Q?"]) == 1
    assert "Text segmentation failed. Exiting." in capsys.readouterr().out
