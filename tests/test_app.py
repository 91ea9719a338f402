from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

from src.app import build_app
from src.config import load_config
from src.session.board import BoardMode

CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "config.yaml"


def test_build_app_shares_timers_and_client(monkeypatch) -> None:
    monkeypatch.delenv("STOPBOARD_CACHE_PATH", raising=False)
    config = load_config(str(CONFIG_PATH))

    app = build_app(config, MagicMock(), MagicMock())

    assert app.board.timers is app.timers
    assert app.board.mode is BoardMode.SINGLE
    assert app.cache.path == Path(config.catalog.cache_path)
    assert app.client._stationboard_limit == config.transport.stationboard_limit
