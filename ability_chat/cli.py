from __future__ import annotations

import argparse
import json
import logging

from .config import PROVIDERS, Settings
from .pipeline import build_orchestrator


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat with a model that can call the site's abilities.")
    parser.add_argument("--provider", choices=PROVIDERS, help="Model provider (defaults to ABILITY_CHAT_PROVIDER or gemini)")
    parser.add_argument("--model", help="Model id for the selected provider")
    parser.add_argument("--timeout", type=float, help="Seconds to wait for each model call")
    parser.add_argument(
        "--pg-dsn",
        help="Postgres DSN for the content.items table (defaults to PG_DSN env; no content backend when unset)",
    )
    parser.add_argument("--list-abilities", action="store_true", help="Print the registered abilities and exit")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging of model traffic")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    settings = Settings.from_env().with_overrides(
        provider=args.provider,
        timeout=args.timeout,
        pg_dsn=args.pg_dsn,
    )
    if args.model:
        field = "ollama_model" if settings.provider == "ollama" else "gemini_model"
        settings = settings.with_overrides(**{field: args.model})

    orchestrator = build_orchestrator(settings, verbose=args.verbose)

    if args.list_abilities:
        for ability in orchestrator.registry.list_all():
            print(json.dumps(ability.to_json(), indent=2))
        return

    print("Ability chat. Type 'quit' to leave.")
    while True:
        try:
            prompt = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break
        if not prompt:
            continue
        if prompt.lower() in {"quit", "exit"}:
            print("Goodbye.")
            break

        result = orchestrator.handle(prompt)
        if result.success:
            print(f"\n{result.message}\n")
        else:
            print(f"\nError: {result.message}\n")

        if args.verbose:
            for call in result.tool_calls:
                print(f"[Tool] {call['name']} {json.dumps(call['arguments'])}")
                print(f"[Result] {call['result']}")
            print(f"[State] {result.state}")


if __name__ == "__main__":
    main()
