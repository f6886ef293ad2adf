"""
CLI entrypoint for agentloop.

Examples:
    agentloop list-tools
    agentloop run --provider anthropic --prompt "Echo hello" --stream
    agentloop chat --provider ollama --model llama3.1
    agentloop health --provider openai --provider ollama
    agentloop models --provider ollama
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import List, Optional

from .agent import Agent, AgentConfig
from .exceptions import AgentLoopError
from .memory import ConversationMemory
from .providers.anthropic_provider import AnthropicProvider
from .providers.base import Provider
from .providers.ollama_provider import OllamaProvider
from .providers.openai_provider import OpenAIProvider
from .providers.stubs import LocalProvider
from .tools import ToolRegistry
from .types import Message, Role

PROVIDER_NAMES = ("anthropic", "openai", "ollama", "local")


def _build_provider(name: str, model: Optional[str] = None) -> Provider:
    if name == "anthropic":
        return AnthropicProvider(default_model=model) if model else AnthropicProvider()
    if name == "openai":
        return OpenAIProvider(default_model=model) if model else OpenAIProvider()
    if name == "ollama":
        return OllamaProvider(default_model=model) if model else OllamaProvider()
    if name == "local":
        return LocalProvider()
    raise ValueError(f"Unknown provider '{name}'.")


def _default_tools() -> ToolRegistry:
    registry = ToolRegistry()

    @registry.tool(description="Echo back the provided text.")
    def echo(text: str) -> str:
        return json.dumps({"echo": text})

    return registry


def list_tools(registry: ToolRegistry) -> None:
    for definition in registry.definitions():
        print(f"- {definition.name}: {definition.description}")


def _build_agent(args: argparse.Namespace, registry: ToolRegistry) -> Agent:
    tools = registry.list_tools()
    if getattr(args, "tool", None):
        tools = [t for t in tools if t.name == args.tool]
    config = AgentConfig(
        model=args.model or "",
        system_prompt=args.system,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
        max_iterations=args.max_iterations,
        stream=args.stream,
    )
    return Agent(
        providers=[_build_provider(args.provider, args.model)],
        tools=tools,
        memory=ConversationMemory(),
        config=config,
    )


async def run_agent(args: argparse.Namespace, registry: ToolRegistry) -> None:
    agent = _build_agent(args, registry)
    printer = _StreamPrinter()
    result = await agent.run(args.session, args.prompt, stream_handler=printer)
    if printer.printed:
        print()
    else:
        print(result.text)
    if args.usage:
        print(result.usage)


async def interactive_chat(args: argparse.Namespace, registry: ToolRegistry) -> None:
    agent = _build_agent(args, registry)
    history: List[Message] = []
    print("Interactive chat. Type 'exit' to quit.\n")
    while True:
        user_input = (await asyncio.to_thread(input, "You: ")).strip()
        if user_input.lower() in {"exit", "quit"}:
            print("Goodbye!")
            break
        if not user_input:
            continue
        printer = _StreamPrinter(prefix="\nAI: ")
        result = await agent.run(args.session, user_input, history=history, stream_handler=printer)
        history.append(Message(role=Role.USER, content=user_input))
        history.append(Message(role=Role.ASSISTANT, content=result.text))
        if printer.printed:
            print("\n")
        else:
            print(f"\nAI: {result.text}\n")


async def health(args: argparse.Namespace) -> int:
    agent = Agent(providers=[_build_provider(name) for name in args.provider])
    report = await agent.health_check_all()
    for provider_id, healthy in report:
        print(f"{provider_id}: {'ok' if healthy else 'unreachable'}")
    return 0 if all(healthy for _, healthy in report) else 1


async def list_models(args: argparse.Namespace) -> None:
    provider = _build_provider(args.provider)
    for model in await provider.available_models():
        print(model)


def _add_agent_arguments(parser: argparse.ArgumentParser, max_iterations: int) -> None:
    parser.add_argument(
        "--provider", default="anthropic", choices=PROVIDER_NAMES, help="Provider name"
    )
    parser.add_argument("--model", help="Model name (defaults to the provider's default)")
    parser.add_argument("--system", help="System prompt")
    parser.add_argument("--session", default="cli", help="Conversation memory session id")
    parser.add_argument("--temperature", type=float, default=None, help="Sampling temperature")
    parser.add_argument("--max-tokens", type=int, default=None, help="Max tokens per response")
    parser.add_argument(
        "--max-iterations", type=int, default=max_iterations, help="Max provider round-trips"
    )
    parser.add_argument("--stream", action="store_true", help="Stream provider output to stdout")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Multi-provider agentloop CLI")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list-tools", help="List available tools")
    list_parser.set_defaults(func="list")

    run_parser = subparsers.add_parser("run", help="Run the agent once")
    _add_agent_arguments(run_parser, max_iterations=10)
    run_parser.add_argument("--prompt", required=True, help="User prompt")
    run_parser.add_argument("--tool", help="Restrict to a single tool by name")
    run_parser.add_argument("--usage", action="store_true", help="Print a usage summary")
    run_parser.set_defaults(func="run")

    chat_parser = subparsers.add_parser("chat", help="Interactive chat with history")
    _add_agent_arguments(chat_parser, max_iterations=10)
    chat_parser.set_defaults(func="chat")

    health_parser = subparsers.add_parser("health", help="Check provider reachability")
    health_parser.add_argument(
        "--provider",
        action="append",
        choices=PROVIDER_NAMES,
        required=True,
        help="Provider to check (repeatable)",
    )
    health_parser.set_defaults(func="health")

    models_parser = subparsers.add_parser("models", help="List models a provider can serve")
    models_parser.add_argument("--provider", default="ollama", choices=PROVIDER_NAMES)
    models_parser.set_defaults(func="models")

    return parser


class _StreamPrinter:
    """Writes streamed text deltas to stdout as they arrive."""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix
        self.printed = False

    def __call__(self, text: str) -> None:
        if not self.printed:
            print(self.prefix, end="")
            self.printed = True
        print(text, end="", flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    registry = _default_tools()

    try:
        if args.func == "list":
            list_tools(registry)
        elif args.func == "run":
            asyncio.run(run_agent(args, registry))
        elif args.func == "chat":
            asyncio.run(interactive_chat(args, registry))
        elif args.func == "health":
            return asyncio.run(health(args))
        elif args.func == "models":
            asyncio.run(list_models(args))
        else:
            parser.print_help()
    except AgentLoopError as exc:
        print(f"error: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
