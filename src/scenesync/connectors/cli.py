"""Local CLI REPL connector and console notices."""

from __future__ import annotations

import asyncio
import logging
import shlex
import sys
from typing import TYPE_CHECKING

from scenesync.connectors.base import PassTrigger, TriggerKind
from scenesync.errors import SceneSyncError
from scenesync.scenes.matcher import persona_names

if TYPE_CHECKING:
    from scenesync.connectors.base import TriggerHandler
    from scenesync.daemon import Components

logger = logging.getLogger(__name__)

HELP = """\
Commands:
  check               Check all scene threads now
  sync                Import scenes from the bot tracker
  muses               List muses visible to your API key
  toggle              Enable/disable background polling
  create              Create a new scene (prompts for details)
  post <path>         Send text to a scene's thread as a muse
  help                Show this help
  exit                Quit"""


class ConsoleNotifier:
    """User notices on stderr."""

    def notify(self, message: str) -> None:
        logger.info("Notice: %s", message)
        print(f"[scenesync] {message}", file=sys.stderr)


class CLIConnector:
    """Interactive REPL connector — reads commands from stdin."""

    def __init__(self, components: Components) -> None:
        self._components = components
        self._running = False

    @property
    def name(self) -> str:
        return "cli"

    async def start(self, handler: TriggerHandler) -> None:
        self._running = True

        print("scenesync (type 'help' for commands, 'exit' or Ctrl+C to quit)")
        print("-" * 48)

        while self._running:
            try:
                line = await self._ask("\n> ")
            except (EOFError, KeyboardInterrupt):
                print("\nBye!")
                break

            if line is None or line.strip().lower() in ("exit", "quit"):
                print("Bye!")
                break

            try:
                args = shlex.split(line)
            except ValueError as e:
                print(f"Could not parse command: {e}")
                continue
            if not args:
                continue

            try:
                await self._dispatch(handler, args[0].lower(), args[1:])
            except SceneSyncError as e:
                print(f"Error: {e}")
            except OSError as e:
                print(f"File error: {e}")

    async def _dispatch(self, handler: TriggerHandler, command: str, args: list[str]) -> None:
        c = self._components
        if command == "check":
            result = await handler(PassTrigger(TriggerKind.COMMAND, source=self.name))
            if result is not None:
                print(
                    f"{result.updated} updated, {result.checked} checked, "
                    f"{result.skipped} skipped, {result.failed} failed"
                    + (f" ({result.aborted})" if result.aborted else "")
                )
        elif command == "sync":
            await c.planner.sync_from_tracker(choose_location=self._choose_location)
        elif command == "muses":
            for persona in await c.reconciler.sync_personas():
                shared = " (shared)" if persona.is_shared else ""
                print(f"  {persona.name}{shared}")
        elif command == "toggle":
            polling = c.config.polling
            polling.enabled = not polling.enabled
            c.notifier.notify(f"Polling {'enabled' if polling.enabled else 'disabled'}")
        elif command == "create":
            await self._create()
        elif command == "post":
            if not args:
                print("Usage: post <scene path>")
                return
            text = await self._ask("Text: ")
            persona = await self._pick_character(args[0])
            await c.poster.post_from_document(args[0], text or "", persona=persona)
        elif command == "help":
            print(HELP)
        else:
            print(f"Unknown command: {command} (try 'help')")

    # ── Prompts ──────────────────────────────────────────────

    async def _ask(self, prompt: str, default: str = "") -> str | None:
        loop = asyncio.get_event_loop()
        answer = await loop.run_in_executor(None, self._read_input, prompt)
        if answer is None:
            return None
        return answer.strip() or default

    def _read_input(self, prompt: str) -> str | None:
        try:
            sys.stdout.write(prompt)
            sys.stdout.flush()
            raw = sys.stdin.buffer.readline()
            if not raw:
                return None
            return raw.decode("utf-8", errors="replace").rstrip("\n")
        except EOFError:
            return None

    async def _choose(self, label: str, options: list[str]) -> str | None:
        if not options:
            return None
        print(label)
        for i, option in enumerate(options, 1):
            print(f"  {i}. {option}")
        answer = await self._ask("Number: ")
        if not answer or not answer.isdigit() or not 1 <= int(answer) <= len(options):
            return None
        return options[int(answer) - 1]

    async def _choose_location(self, context: str = "") -> str | None:
        store = self._components.store
        folders = [f for f in store.folders() if f] or [store.scenes_folder]
        label = f"Scene location for {context}:" if context else "Scene location:"
        picked = await self._choose(label + " (0 for a new folder)", folders)
        if picked is not None:
            return picked
        name = await self._ask("New folder (inside scenes folder, empty to cancel): ")
        if not name:
            return None
        return f"{store.scenes_folder}/{name.strip('/')}" if store.scenes_folder else name

    async def _pick_character(self, path: str) -> str | None:
        store = self._components.store
        try:
            if not store.exists(path):
                return None
        except ValueError:
            return None  # the poster reports the bad path
        characters = persona_names(store.read_front_block(path))
        if len(characters) <= 1:
            return None
        return await self._choose("Send as:", characters)

    async def _create(self) -> None:
        c = self._components
        muses = await c.reconciler.sync_personas()
        if not muses:
            c.notifier.notify("No muses found. Make sure you have muses created in Discord.")
            return
        persona = await self._choose("Muse:", [m.name for m in muses])
        if not persona:
            return
        link = await self._ask("Discord thread/channel URL: ")
        if not link:
            return
        location = await self._choose_location()
        if not location:
            return
        name = await self._ask(f"Scene name [{persona} - Scene]: ", f"{persona} - Scene")
        if not name:
            return
        participants = await self._ask("Number of participants [2]: ", "2")
        try:
            count = int(participants or "2")
        except ValueError:
            count = 2
        await c.planner.create_scene(persona, link, location, name, count)

    async def stop(self) -> None:
        self._running = False
