"""Entry point: python -m scenesync [chat|serve|check|sync|muses|create|post]

- No args / "chat": Interactive CLI REPL
- "serve":          Daemon mode (scheduler + scene watcher)
- Other commands run once and exit
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from scenesync.config import SceneSyncConfig, load_config


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scenesync", description=__doc__.splitlines()[0])
    parser.add_argument("--config", type=Path, default=None, help="path to scenesync.toml")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("chat", help="interactive CLI REPL (default)")
    sub.add_parser("serve", help="daemon mode with scheduler and scene watcher")
    sub.add_parser("check", help="run one reconciliation pass")
    sub.add_parser("sync", help="import scenes from the bot tracker")
    sub.add_parser("muses", help="list muses visible to the API key")

    create = sub.add_parser("create", help="create a scene document and register it")
    create.add_argument("persona")
    create.add_argument("link", help="Discord thread or channel URL")
    create.add_argument("--location", default=None, help="vault folder (default: scenes folder)")
    create.add_argument("--name", default=None, help="scene name (default: '<persona> - Scene')")
    create.add_argument("--participants", type=int, default=2)

    post = sub.add_parser("post", help="send text to a scene's thread")
    post.add_argument("path", help="scene document, relative to the vault")
    post.add_argument("text", nargs="?", default=None, help="message (default: read stdin)")
    post.add_argument("--as", dest="persona", default=None, help="character to post as")
    return parser


def _run_cli(config: SceneSyncConfig) -> None:
    """Interactive CLI REPL mode."""
    from scenesync.connectors.cli import CLIConnector
    from scenesync.daemon import build_components

    async def _main() -> None:
        components = build_components(config)
        cli = CLIConnector(components)
        try:
            await components.reconciler.sync_personas()
            await cli.start(components.reconciler.handle_trigger)
        finally:
            await components.close()

    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        pass


def _run_serve(config: SceneSyncConfig, config_path: Path | None) -> None:
    """Daemon mode — scheduler + watcher."""
    from scenesync.daemon import SceneSyncDaemon

    daemon = SceneSyncDaemon(config, config_path=config_path)
    asyncio.run(daemon.run())


async def _run_once(config: SceneSyncConfig, args: argparse.Namespace) -> int:
    from scenesync.connectors.base import PassTrigger, TriggerKind
    from scenesync.daemon import build_components
    from scenesync.errors import SceneSyncError

    components = build_components(config)
    try:
        if args.command == "check":
            result = await components.reconciler.handle_trigger(
                PassTrigger(TriggerKind.COMMAND, source="cli")
            )
            print(
                f"{result.updated} updated, {result.checked} checked, "
                f"{result.skipped} skipped, {result.failed} failed"
            )
            return 1 if result.aborted else 0

        if args.command == "sync":
            synced = await components.planner.sync_from_tracker()
            return 0 if synced is not None else 1

        if args.command == "muses":
            muses = await components.reconciler.sync_personas()
            for muse in muses:
                print(f"{muse.name}{' (shared)' if muse.is_shared else ''}")
            return 0

        if args.command == "create":
            name = args.name or f"{args.persona} - Scene"
            location = args.location or components.store.scenes_folder
            try:
                document = await components.planner.create_scene(
                    args.persona, args.link, location, name, args.participants
                )
            except (SceneSyncError, FileExistsError) as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1
            print(document.path)
            return 0

        if args.command == "post":
            text = args.text if args.text is not None else sys.stdin.read()
            ok = await components.poster.post_from_document(args.path, text, persona=args.persona)
            return 0 if ok else 1
    finally:
        await components.close()
    return 2


def main() -> None:
    args = _build_parser().parse_args()
    config = load_config(args.config)
    _setup_logging(config.log_level)

    cmd = args.command or "chat"
    if cmd == "chat":
        _run_cli(config)
    elif cmd == "serve":
        _run_serve(config, args.config)
    else:
        try:
            sys.exit(asyncio.run(_run_once(config, args)))
        except KeyboardInterrupt:
            sys.exit(130)


if __name__ == "__main__":
    main()
