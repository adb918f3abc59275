"""Textual application entry point for tabpilot."""

from __future__ import annotations

import logging
from pathlib import Path

from textual.app import App, ComposeResult
from textual.widgets import Footer, Header

from .client import CompletionClient, DemoCompletionClient, HttpCompletionClient
from .config import AppConfig, CompletionSettings, load_config
from .engine import LoggingTelemetrySink, NullTelemetrySink, TelemetrySink
from .session import CompletionSession
from .widgets import EditorPad, StatusBar

LOG = logging.getLogger(__name__)


def _load_app_config() -> AppConfig:
    """Load configuration with a small wrapper for future overrides."""

    return load_config()


def create_client(settings: CompletionSettings) -> CompletionClient:
    """Pick the demo client or the HTTP client based on settings."""

    if settings.demo_mode:
        return DemoCompletionClient()
    return HttpCompletionClient(settings)


def create_telemetry(config: AppConfig) -> TelemetrySink:
    if config.telemetry_enabled:
        return LoggingTelemetrySink()
    return NullTelemetrySink()


class TabpilotApp(App[None]):
    """Scratch editor demonstrating inline completions."""

    CSS = """
    Screen {
        layout: vertical;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
    ]

    def __init__(
        self,
        *,
        client: CompletionClient | None = None,
        project_path: Path | None = None,
    ) -> None:
        super().__init__()
        self._config = _load_app_config()
        settings = self._config.completion
        self._session = CompletionSession(
            client or create_client(settings),
            settings=settings,
            telemetry=create_telemetry(self._config),
            project_path=str(project_path or Path.cwd()),
        )

    def compose(self) -> ComposeResult:
        """Compose the root layout."""

        yield Header(show_clock=True)
        yield EditorPad(self._session)
        yield StatusBar(self._session)
        yield Footer()

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def session(self) -> CompletionSession:
        """Expose the completion session for tests."""

        return self._session

    async def _shutdown(self) -> None:
        try:
            await self._session.aclose()
        except Exception:
            LOG.exception("Failed to close completion session")
        await super()._shutdown()


def main() -> None:
    """Invoke the Textual application."""

    TabpilotApp().run()


if __name__ == "__main__":
    main()
