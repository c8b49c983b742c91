"""
AnkiConnect client for drill2anki.

Provides HTTP wrapper around AnkiConnect API for:
- Creating decks and pushing converted notes (add or update)
- Locating the cards of pushed notes
- Writing scheduling history onto cards (ease, due date, interval, reps, lapses)

Based on AnkiConnect API v6.

Hardening:
- Connection check with graceful degradation
- Configurable timeout with retry logic
- Detection of Anki modal dialogs (blocks API)
"""

from __future__ import annotations

import time
from typing import Any

import requests
from loguru import logger
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from drill2anki.config import get_settings

# Default retry configuration for AnkiConnect
DEFAULT_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.5  # 0.5, 1.0, 2.0 seconds between retries
RETRY_STATUS_CODES = [500, 502, 503, 504]  # Retry on server errors
API_VERSION = 6


class AnkiConnectError(RuntimeError):
    """Raised when AnkiConnect answers with an error."""


class AnkiClient:
    """
    Wrapper around the AnkiConnect API.

    AnkiConnect must be installed in Anki and running on port 8765.
    See: https://foosoft.net/projects/anki-connect/
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: int | None = None,
        retries: int = DEFAULT_RETRIES,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    ) -> None:
        """
        Initialize AnkiConnect client with retry logic.

        Args:
            base_url: AnkiConnect URL (default from config)
            timeout: Request timeout in seconds (default from config)
            retries: Number of retry attempts for failed requests
            backoff_factor: Exponential backoff factor between retries
        """
        settings = get_settings()
        self.base_url = base_url or settings.anki_connect_url
        self.timeout = timeout or settings.anki_timeout
        self._last_connection_check = 0.0
        self._connection_available = False

        # Configure session with retry logic
        self.session = requests.Session()

        retry_strategy = Retry(
            total=retries,
            backoff_factor=backoff_factor,
            status_forcelist=RETRY_STATUS_CODES,
            allowed_methods=["POST"],  # AnkiConnect only uses POST
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        logger.debug(
            "Initialized AnkiConnect client: url={}, timeout={}s, retries={}",
            self.base_url,
            self.timeout,
            retries,
        )

    # ========================================
    # Core API Methods
    # ========================================

    def _invoke(self, action: str, params: dict[str, Any] | None = None) -> Any:
        """
        Invoke an AnkiConnect API action.

        Args:
            action: AnkiConnect action name (e.g., "version", "addNote")
            params: Action parameters

        Returns:
            Result from AnkiConnect API

        Raises:
            AnkiConnectError: If AnkiConnect returns an error
            requests.RequestException: If HTTP request fails
        """
        payload = {
            "action": action,
            "version": API_VERSION,
            "params": params or {},
        }

        # Truncate large params for logging to avoid verbose output
        log_params = params
        if params:
            log_params = {}
            for k, v in params.items():
                if isinstance(v, list) and len(v) > 10:
                    log_params[k] = f"[{len(v)} items]"
                else:
                    log_params[k] = v
        logger.debug("AnkiConnect request: action={}, params={}", action, log_params)

        response = self.session.post(
            self.base_url,
            json=payload,
            timeout=self.timeout,
        )
        response.raise_for_status()

        data = response.json()

        if data.get("error"):
            raise AnkiConnectError(f"AnkiConnect error: {data['error']}")

        return data.get("result")

    def _invoke_multi(self, actions: list[dict[str, Any]]) -> list[tuple[Any, str | None]]:
        """
        Invoke multiple AnkiConnect actions in a single request.

        Args:
            actions: List of action dicts, each with 'action' and optional 'params'

        Returns:
            One (result, error) pair per action, in order
        """
        if not actions:
            return []

        versioned = [{**action, "version": API_VERSION} for action in actions]
        logger.debug("AnkiConnect multi request: {} actions", len(versioned))

        results = self._invoke("multi", {"actions": versioned}) or []
        return [self._unwrap(item) for item in results]

    @staticmethod
    def _unwrap(item: Any) -> tuple[Any, str | None]:
        """Split one multi result into (result, error)."""
        if isinstance(item, dict) and "error" in item and "result" in item:
            return item["result"], item["error"]
        return item, None

    def check_connection(self, cache_seconds: float = 30.0) -> bool:
        """
        Check if AnkiConnect is running and accessible.

        Uses cached result to avoid hammering Anki on repeated checks.
        Detects common failure modes:
        - Anki not running
        - AnkiConnect addon not installed
        - Modal dialog blocking API (e.g., "Check Database")

        Args:
            cache_seconds: Seconds to cache the connection status

        Returns:
            True if connection successful, False otherwise
        """
        now = time.monotonic()
        if self._last_connection_check and (now - self._last_connection_check) < cache_seconds:
            return self._connection_available

        self._last_connection_check = now
        try:
            version = self._invoke("version")
            self._connection_available = True
            logger.debug("AnkiConnect version detected: {}", version)
            return True

        except requests.exceptions.ConnectionError:
            self._connection_available = False
            logger.warning(
                "Anki not running or AnkiConnect not installed. "
                "Start Anki and ensure AnkiConnect addon is enabled."
            )
            return False

        except requests.exceptions.Timeout:
            self._connection_available = False
            logger.warning(
                "AnkiConnect request timed out. "
                "Anki may have a modal dialog open (e.g., 'Check Database', 'Sync'). "
                "Close any dialogs and try again."
            )
            return False

        except (AnkiConnectError, requests.RequestException, ValueError) as exc:
            self._connection_available = False
            logger.warning("AnkiConnect error: {}", exc)
            return False

    def get_version(self) -> int | None:
        """
        Get AnkiConnect API version.

        Returns:
            API version number if available, None if not connected
        """
        try:
            return self._invoke("version")
        except (AnkiConnectError, requests.RequestException, ValueError):
            return None

    def require_connection(self) -> None:
        """
        Raise an exception if Anki is not available.

        Use at the start of operations that require Anki.
        """
        if not self.check_connection():
            raise AnkiConnectError(
                "Anki is not available. Ensure Anki is running with "
                "AnkiConnect addon enabled and no modal dialogs are open."
            )

    # ========================================
    # Decks & Notes
    # ========================================

    def deck_names(self) -> list[str]:
        return self._invoke("deckNames") or []

    def create_deck(self, deck_name: str) -> int | None:
        """Create a deck (no-op if it exists). Returns the deck id."""
        return self._invoke("createDeck", {"deck": deck_name})

    def add_notes(self, notes: list[dict[str, Any]]) -> list[tuple[int | None, str | None]]:
        """
        Add notes in a single request.

        Args:
            notes: Note dicts with deckName, modelName, fields, tags

        Returns:
            (note_id, error) per note; note_id is None on failure
        """
        actions = [{"action": "addNote", "params": {"note": note}} for note in notes]
        return self._invoke_multi(actions)

    def update_notes(self, notes: list[dict[str, Any]]) -> list[str | None]:
        """
        Update fields and tags of existing notes in a single request.

        Args:
            notes: Note dicts with id, fields, tags

        Returns:
            Error message per note (None on success)
        """
        actions = [{"action": "updateNote", "params": {"note": note}} for note in notes]
        return [error for _, error in self._invoke_multi(actions)]

    # ========================================
    # Cards & Scheduling
    # ========================================

    def find_cards_for_notes(self, note_ids: list[int]) -> dict[int, list[int]]:
        """Map each note id to its card ids (one findCards per note, batched)."""
        actions = [
            {"action": "findCards", "params": {"query": f"nid:{note_id}"}}
            for note_id in note_ids
        ]
        cards: dict[int, list[int]] = {}
        for note_id, (result, error) in zip(note_ids, self._invoke_multi(actions)):
            if error:
                logger.warning("findCards failed for note {}: {}", note_id, error)
                continue
            cards[note_id] = list(result or [])
        return cards

    def set_ease_factors(self, card_ids: list[int], ease_factors: list[int]) -> list[bool]:
        """Set ease factors (permille) on cards."""
        return self._invoke(
            "setEaseFactors", {"cards": card_ids, "easeFactors": ease_factors}
        ) or []

    def set_due_date(self, card_ids: list[int], days: str) -> bool:
        """
        Reschedule cards as review cards due in *days*.

        ``days`` follows Anki's Set Due Date syntax: "0" is today, "3" is in
        three days, "3!" also sets the interval to three days.
        """
        return bool(self._invoke("setDueDate", {"cards": card_ids, "days": days}))

    def set_card_values(
        self,
        card_id: int,
        keys: list[str],
        values: list[Any],
    ) -> list[bool]:
        """Set raw card columns (ivl, reps, lapses, ...) via setSpecificValueOfCard."""
        return self._invoke(
            "setSpecificValueOfCard",
            {
                "card": card_id,
                "keys": keys,
                "newValues": [str(v) for v in values],
                "warning_check": True,
            },
        ) or []
