"""Tests for CLI interface."""

import json
import logging
from pathlib import Path

import pytest

from src.rag.cli import main
from src.rag.knowledge_base import KNOWLEDGE_BASE


@pytest.fixture(autouse=True)
def reset_logging():  # type: ignore[no-untyped-def]
    yield
    logging.getLogger("rag").handlers.clear()


class TestCLI:
    def test_demo_runs_successfully(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["demo", "--question", "What is RAG?"])
        captured = capsys.readouterr()
        assert "Semantic Retrieval Engine - Demo" in captured.out
        assert f"Indexed {len(KNOWLEDGE_BASE)} documents" in captured.out
        assert "[100%]" in captured.out
        assert "Results:" in captured.out

    def test_search(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["search", "What data structures does Pandas provide?", "--top-k", "2"])
        data = json.loads(capsys.readouterr().out)
        assert len(data["results"]) == 2
        scores = [r["score"] for r in data["results"]]
        assert scores == sorted(scores, reverse=True)

    def test_context(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["context", "Transformer self-attention", "--top-k", "2"])
        out = capsys.readouterr().out
        assert out.startswith("[Source 1] ")
        assert "\n\n[Source 2] " in out

    def test_ask(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["ask", "What is NumPy?"])
        data = json.loads(capsys.readouterr().out)
        assert data["question"] == "What is NumPy?"
        assert data["model"] == "mock"
        assert len(data["sources"]) == 2

    def test_ask_stream(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["ask", "What is NumPy?", "--stream"])
        out = capsys.readouterr().out
        assert len(out.strip()) > 0

    def test_custom_corpus(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        corpus = tmp_path / "corpus.json"
        corpus.write_text(json.dumps([
            {"id": "only", "content": "cats are mammals"},
        ]))
        main(["--corpus", str(corpus), "search", "cats are mammals", "--top-k", "5"])
        data = json.loads(capsys.readouterr().out)
        assert [r["id"] for r in data["results"]] == ["only"]
        assert data["results"][0]["score"] == pytest.approx(1.0)

    def test_main_no_args(self) -> None:
        with pytest.raises(SystemExit):
            main([])

    @pytest.mark.parametrize("command", ["search", "context", "ask"])
    @pytest.mark.parametrize("top_k", ["0", "-2", "three"])
    def test_invalid_top_k_is_usage_error(
        self, command: str, top_k: str, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([command, "python", "--top-k", top_k])
        assert exc_info.value.code == 2
        assert "--top-k" in capsys.readouterr().err

    def test_serve_uses_configured_address(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[tuple[str, int]] = []
        monkeypatch.setenv("RAG_API_HOST", "127.0.0.1")
        monkeypatch.setenv("RAG_API_PORT", "9001")
        monkeypatch.setattr("src.rag.cli.run_serve", lambda host, port: calls.append((host, port)))
        main(["serve"])
        main(["serve", "--port", "9100"])
        assert calls == [("127.0.0.1", 9001), ("127.0.0.1", 9100)]
