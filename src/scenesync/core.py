"""Reconciler — keeps scene documents in step with remote thread state.

One pass:
1. Resolve identity (cached per API key); none → quiet no-op
2. Fetch the threads the server already links to scene documents
3. Walk the scenes folder, classify each document
4. Query live state per thread (linked record first, own Link otherwise)
5. Rewrite `Replied?` / `Participants` where they drifted
6. Report how many documents changed

Passes hold no state between runs, so overlapping or repeated passes converge
on the same documents.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from scenesync.connectors.base import PassTrigger, TriggerKind
from scenesync.errors import AuthError, RemoteError
from scenesync.scenes import frontblock
from scenesync.scenes.matcher import (
    PARTICIPANTS_KEY,
    REPLIED_KEY,
    Candidate,
    Skip,
    classify,
)
from scenesync.scenes.store import Document

if TYPE_CHECKING:
    from scenesync.config import SceneSyncConfig
    from scenesync.connectors.base import Notifier
    from scenesync.remote.base import LinkedThread, Persona, RemoteClient, ThreadState
    from scenesync.remote.identity import IdentityResolver
    from scenesync.scenes.store import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_PARTICIPANTS = 2


@dataclass
class PassResult:
    """Outcome of one reconciliation pass."""

    updated: int = 0
    checked: int = 0
    skipped: int = 0
    failed: int = 0
    aborted: str | None = None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def compute_mutations(front: Mapping[str, Any], state: ThreadState) -> list[tuple[str, Any]]:
    """Front-block writes needed to match the server state (empty when in sync)."""
    mutations: list[tuple[str, Any]] = []

    current_replied = frontblock.is_true(front.get(REPLIED_KEY))
    if current_replied != state.replied:
        mutations.append((REPLIED_KEY, state.replied))

    current = front.get(PARTICIPANTS_KEY, front.get(PARTICIPANTS_KEY.lower()))
    wanted = max(state.participants or DEFAULT_PARTICIPANTS, 1)
    if _as_int(current) != wanted:
        mutations.append((PARTICIPANTS_KEY, wanted))

    return mutations


class Reconciler:
    """Core engine — the single intake point for every reconciliation trigger."""

    def __init__(
        self,
        config: SceneSyncConfig,
        client: RemoteClient,
        store: DocumentStore,
        identity: IdentityResolver,
        notifier: Notifier,
    ) -> None:
        self.config = config
        self.client = client
        self.store = store
        self.identity = identity
        self.notifier = notifier

    # ── Trigger intake ───────────────────────────────────────

    async def handle_trigger(self, trigger: PassTrigger) -> PassResult | None:
        """Route a trigger from any source to the matching flow."""
        if trigger.kind is TriggerKind.DOCUMENT_CHANGED:
            if trigger.path:
                await self._on_document_changed(trigger.path)
            return None

        if trigger.kind is TriggerKind.TIMER and not self.config.polling.enabled:
            return None

        logger.debug("Pass triggered by %s", trigger.source or trigger.kind.value)
        return await self.run_pass()

    async def _on_document_changed(self, path: str) -> None:
        if not self.store.in_scenes_folder(path):
            return
        if not self.config.polling.enabled or not self.identity.cache.credential:
            return

        # Let the writer finish before reading.
        await asyncio.sleep(self.config.polling.settle_delay)
        try:
            await self.reconcile_document(path)
        except Exception as e:
            logger.debug("Error checking scene %s: %s", path, e)

    # ── Full pass ────────────────────────────────────────────

    async def run_pass(self) -> PassResult:
        result = PassResult()
        auth_reported: set[str] = set()  # call sites already noticed this pass

        identity = await self.identity.resolve()
        if not identity:
            result.aborted = "no identity"
            return result

        try:
            linked = await self.client.linked_threads(identity)
        except AuthError:
            self._report_auth("scenes/linked", auth_reported)
            result.aborted = "unauthorized"
            return result
        except RemoteError as e:
            logger.error("Failed to fetch linked scenes: %s", e)
            result.aborted = "linked scenes unavailable"
            return result

        if not linked:
            return result

        by_path: dict[str, LinkedThread] = {
            thread.scene_path: thread for thread in linked if thread.scene_path
        }

        for document in self.store.iter_documents():
            try:
                outcome = await self._reconcile(document, identity, by_path.get(document.path))
            except AuthError:
                self._report_auth("scenes/query", auth_reported)
                result.failed += 1
                continue
            except Exception as e:
                logger.error("Error checking %s: %s", document.path, e)
                result.failed += 1
                continue

            if outcome is None:
                result.skipped += 1
                continue
            result.checked += 1
            if outcome:
                result.updated += 1

        if result.updated:
            self.notifier.notify(f"Updated {result.updated} scene file(s)")
        logger.info(
            "Pass done: %d updated, %d checked, %d skipped, %d failed",
            result.updated,
            result.checked,
            result.skipped,
            result.failed,
        )
        return result

    async def _reconcile(
        self, document: Document, identity: str, linked: LinkedThread | None
    ) -> bool | None:
        """Check one document; None when it was skipped, else whether it changed."""
        front = self.store.read_front_block(document.path)
        decision = classify(front)
        if isinstance(decision, Skip):
            logger.debug("Skipping %s: %s", document.path, decision.reason)
            return None

        thread_id, personas = self._query_target(document, decision, linked)
        if not personas:
            logger.debug("Skipping %s: linked record has no characters", document.path)
            return None

        query = await self.client.query_scene(thread_id, personas, identity)
        if not query.tracked or query.state is None:
            # Untracked is not "no replies"; leave the document alone.
            return False
        return self._apply_state(document, front, query.state)

    def _query_target(
        self, document: Document, decision: Candidate, linked: LinkedThread | None
    ) -> tuple[str, list[str]]:
        if linked is None:
            return decision.ref.thread_id, decision.personas
        if linked.thread_id != decision.ref.thread_id:
            logger.warning(
                "%s links thread %s but the server maps it to %s; using the server record",
                document.path,
                decision.ref.thread_id,
                linked.thread_id,
            )
        return linked.thread_id, linked.characters

    def _apply_state(self, document: Document, front: Mapping[str, Any], state: ThreadState) -> bool:
        mutations = compute_mutations(front, state)
        if not mutations:
            return False

        text = self.store.read_text(document.path)
        updated = frontblock.set_mutations(text, mutations)
        if updated is None:
            logger.error("No front-block found in %s", document.path)
            return False
        if updated != text:
            self.store.write_text(document.path, updated)
        for key, value in mutations:
            logger.info("%s: Updated %s to %s", document.name, key, value)
        return True

    # ── Single document ──────────────────────────────────────

    async def reconcile_document(self, path: str) -> bool:
        """Query one scene by its own Link/Characters and update it."""
        front = self.store.read_front_block(path)
        decision = classify(front)
        if isinstance(decision, Skip):
            return False

        identity = await self.identity.resolve()
        if not identity:
            return False

        try:
            query = await self.client.query_scene(decision.ref.thread_id, decision.personas, identity)
        except AuthError:
            self.identity.report_auth_failure(f"scenes/query for {path}")
            return False
        except RemoteError as e:
            logger.error("API error for %s: %s", path, e)
            return False

        if not query.tracked or query.state is None:
            return False
        return self._apply_state(Document(path=path), front, query.state)

    # ── Personas ─────────────────────────────────────────────

    async def sync_personas(self) -> list[Persona]:
        """Refresh the persona cache for every identity."""
        try:
            return await self.identity.personas(refresh=True)
        except AuthError:
            self.identity.report_auth_failure("muses/list")
        except RemoteError as e:
            logger.error("Failed to sync muses: %s", e)
        return []

    def _report_auth(self, site: str, reported: set[str]) -> None:
        if site in reported:
            logger.debug("%s: unauthorized (already reported this pass)", site)
            return
        reported.add(site)
        self.identity.report_auth_failure(site)
