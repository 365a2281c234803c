"""Streaming chat example: an interactive terminal chat.

Demonstrates:
- Building a Configuration from the environment (or a local server URL)
- Streaming a chat completion with chats_stream callbacks
- Reassembling the reply with ChatStreamAccumulator
- Optional OpenTelemetry tracing of each stream

Usage:
    uv run --env-file=.env examples/stream_chat_example.py --model gpt-4o-mini --trace
    uv run examples/stream_chat_example.py --host localhost --port 8000 --scheme http --model Qwen/Qwen3-8B
"""

import argparse
import asyncio

from corvid import Configuration, OpenAI, configure_logging
from corvid.chat import ChatQuery, ChatStreamAccumulator
from corvid.message import ChatMessage, MessageRole


def setup_tracing(service_name: str):
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from corvid.instrumentation import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    instrument()


def make_configuration(args) -> Configuration:
    if args.host:
        return Configuration(
            token=args.token or "DUMMY",
            host=args.host,
            port=args.port,
            scheme=args.scheme,
        )
    return Configuration.from_env()


async def ask(client: OpenAI, model: str, transcript: list[ChatMessage]) -> ChatMessage:
    acc = ChatStreamAccumulator()

    def on_result(result):
        acc.feed(result)
        for choice in result.choices:
            if choice.delta.content:
                print(choice.delta.content, end="", flush=True)

    def on_error(error):
        print(f"\n[stream error] {error}")

    def on_complete(error):
        if error is not None:
            print(f"\n[stream failed] {type(error).__name__}: {error}")

    session = client.chats_stream(
        ChatQuery(model=model, messages=transcript),
        on_result=on_result,
        on_error=on_error,
        on_complete=on_complete,
    )
    await session.wait()
    print()
    return acc.finalize()


async def main(args):
    transcript = [
        ChatMessage.system("You are a concise, helpful assistant."),
    ]
    async with OpenAI(make_configuration(args)) as client:
        while True:
            try:
                user_input = input("> ")
            except EOFError:
                break
            if user_input.strip() in ("exit", "quit"):
                break
            transcript.append(ChatMessage.user(user_input))
            reply = await ask(client, args.model, transcript)
            transcript.append(
                ChatMessage(role=MessageRole.ASSISTANT, content=reply.content)
            )


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--model", default="gpt-4o-mini")
    parser.add_argument("--host")
    parser.add_argument("--port", type=int, default=443)
    parser.add_argument("--scheme", default="https")
    parser.add_argument("--token")
    parser.add_argument("--trace", action="store_true")
    parser.add_argument("--log-file")
    args = parser.parse_args()

    configure_logging(log_file=args.log_file)
    if args.trace:
        setup_tracing("corvid-stream-chat")
    asyncio.run(main(args))
