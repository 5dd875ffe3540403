"""
Command-line entry point: ``askpop PROMPT TEXT``.

Runs one session against the configured endpoint, prints the final answer
to stdout and exits non-zero if the session failed.
"""

from __future__ import annotations

import asyncio
import signal
import sys

import click
import structlog

from askpop.chat_service import ChatService
from askpop.config import Configuration
from askpop.llm.client import StreamingLLMClient
from askpop.llm.models import MessageRole
from askpop.logging_utils import configure_logging
from askpop.session import SessionManager, SessionState
from askpop.sinks import ConversationSink, NoteSink

logger = structlog.get_logger(__name__)


def render_result(service: ChatService) -> tuple[str, str | None]:
    """Final answer text and error message (if any) for the last send."""
    sink = service.last_sink
    if isinstance(sink, NoteSink):
        return sink.text, sink.error[1] if sink.error else None

    if isinstance(sink, ConversationSink):
        conversation = service.conversation
        messages = conversation.messages
        text = messages[-1].content if messages[-1].role is MessageRole.ASSISTANT else ""
        error = conversation.errors[-1].message if conversation.errors else None
        return text, error

    return "", None


async def run(prompt: str, text: str, config: Configuration) -> tuple[SessionState, str, str | None]:
    """Run a single ask and return (state, answer, error)."""
    async with StreamingLLMClient(config.get_http_client_config()) as client:
        manager = SessionManager(client, publish_threshold=config.get_publish_threshold())
        service = ChatService(
            ChatService.ChatServiceConfig(
                manager=manager,
                request_config=config.chat_request_config(),
                mode=config.dispatch_mode(),
                system_prompt=config.get_system_prompt(),
            )
        )

        handle = await service.ask(config.resolve_prompt(prompt), text)

        def signal_handler() -> None:
            logger.info("Received shutdown signal, cancelling session")
            handle.cancel()

        loop = asyncio.get_running_loop()
        if sys.platform != "win32":
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, signal_handler)
        try:
            state = await handle.wait()
        finally:
            if sys.platform != "win32":
                for sig in (signal.SIGTERM, signal.SIGINT):
                    loop.remove_signal_handler(sig)

        answer, error = render_result(service)
        return state, answer, error


@click.command()
@click.argument("prompt")
@click.argument("text")
@click.option("--config", "config_path", default=None, help="Path to a config.yaml.")
def cli(prompt: str, text: str, config_path: str | None) -> None:
    """Ask the configured model about TEXT, prefixed with PROMPT."""
    config = Configuration(config_path)
    configure_logging(config.get_logging_config().get("level", "WARNING"))

    state, answer, error = asyncio.run(run(prompt, text, config))

    if answer:
        click.echo(answer)
    if state is SessionState.FAILED:
        click.secho(f"Error: {error}", fg="red", err=True)
        sys.exit(1)
    if state is SessionState.CANCELLED:
        sys.exit(130)


if __name__ == "__main__":
    cli()
