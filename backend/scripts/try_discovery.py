"""Interactive discovery session in the terminal.

Uses the real Anthropic client when ANTHROPIC_API_KEY is set, otherwise the
scripted fake. Sessions live in memory only.

Commands:
    /phase            show the current phase
    /advance <phase>  force the session into a phase
    /history          print the transcript
    /quit             exit
"""

import asyncio
import json

from ideavault.core.config import get_settings
from ideavault.core.exceptions import IdeaVaultError
from ideavault.core.logging import configure_structlog
from ideavault.db.session_store_fake import SessionStoreFake
from ideavault.discovery.phases import DiscoveryPhase
from ideavault.services.discovery_service import DiscoveryService

OWNER_ID = "local-user"


def build_model_client():
    settings = get_settings()
    if settings.anthropic_api_key:
        from ideavault.agent.model_client_anthropic import AnthropicModelClient

        return AnthropicModelClient(settings)

    from ideavault.agent.model_client_fake import ModelClientFake

    print("(no ANTHROPIC_API_KEY set, using the scripted fake model)")
    return ModelClientFake()


async def handle_command(service: DiscoveryService, session_id: str, line: str) -> bool:
    """Run a slash command. Returns False when the loop should stop."""
    command, _, arg = line.partition(" ")

    if command == "/quit":
        return False
    if command == "/phase":
        session = await service.get_session(session_id)
        print(f"phase={session.current_phase.value} status={session.status.value}")
    elif command == "/history":
        session = await service.get_session(session_id)
        for message in session.messages:
            print(f"[{message.role.value}] {message.content}\n")
    elif command == "/advance":
        try:
            target = DiscoveryPhase(arg.strip())
            session = await service.force_advance_phase(session_id, target)
        except ValueError as e:
            print(f"cannot advance: {e}")
        else:
            print(f"phase={session.current_phase.value}")
    else:
        print(f"unknown command: {command}")
    return True


async def main() -> None:
    configure_structlog(log_level="WARNING", json_logs=False)

    model_client = build_model_client()
    try:
        await run_repl(DiscoveryService(model_client, SessionStoreFake()))
    finally:
        if hasattr(model_client, "aclose"):
            await model_client.aclose()


async def run_repl(service: DiscoveryService) -> None:
    session = await service.start_session(OWNER_ID)
    print(f"\n{session.messages[0].content}\n")

    while True:
        try:
            line = input("you> ").strip()
        except EOFError:
            break
        if not line:
            continue
        if line.startswith("/"):
            if not await handle_command(service, session.id, line):
                break
            continue

        try:
            result = await service.send_message(session.id, line)
        except IdeaVaultError as e:
            print(f"error: {e}")
            continue

        print(f"\nadvisor [{result.new_phase.value}]> {result.response_text}\n")
        if result.is_complete:
            print(json.dumps(result.synthesis_output.to_wire(), indent=2))
            break


if __name__ == "__main__":
    asyncio.run(main())
