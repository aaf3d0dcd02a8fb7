"""Rooms and game-state mirroring over the Firebase Realtime Database REST API.

Replication is last-writer-wins: whoever writes ``rooms/<id>/game`` last
defines the state both players see. Nothing here knows the rules; incoming
payloads are handed over raw and validated by the game itself.
"""

from __future__ import annotations

import logging
import queue
import random
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterator, Optional, Tuple

import requests

from ..config import FirebaseSettings
from ..protocol import GameSnapshot, Message, ProtocolError, decode, encode, snapshot_to_payload


LOG = logging.getLogger("checkers_pro.replication")

ROOM_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6

StreamEvent = Tuple[str, str, Any]


class ReplicationError(Exception):
    pass


def new_room_id(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return "".join(rng.choice(ROOM_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def normalize_room_id(room_id: str) -> str:
    code = room_id.strip().upper()
    if len(code) != ROOM_CODE_LENGTH or any(ch not in ROOM_ALPHABET for ch in code):
        raise ReplicationError(f"Invalid room code: {room_id!r}")
    return code


class FirebaseRoomClient:
    def __init__(
        self,
        settings: FirebaseSettings,
        session: Optional[requests.Session] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings
        self._session = session or requests.Session()
        self._rng = rng or random.Random()

    def create_room(self, snapshot: GameSnapshot) -> str:
        # Host plays red and waits for a guest
        room_id = new_room_id(self._rng)
        payload = {
            "createdAt": int(time.time() * 1000),
            "players": {"host": True, "guest": False},
            "game": snapshot_to_payload(snapshot),
        }
        self._request("PUT", f"rooms/{room_id}", payload)
        LOG.info("Created room %s", room_id)
        return room_id

    def join_room(self, room_id: str) -> Dict[str, Any]:
        code = normalize_room_id(room_id)
        room = self.fetch_room(code)
        if not isinstance(room, dict):
            raise ReplicationError(f"Room {code} does not exist.")
        self._request("PUT", f"rooms/{code}/players/guest", True)
        LOG.info("Joined room %s", code)
        return room

    def fetch_room(self, room_id: str) -> Optional[Dict[str, Any]]:
        return self._request("GET", f"rooms/{room_id}")

    def fetch_game(self, room_id: str) -> Optional[Message]:
        return self._request("GET", f"rooms/{room_id}/game")

    def publish(self, room_id: str, snapshot: GameSnapshot) -> None:
        self._request("PUT", f"rooms/{room_id}/game", snapshot_to_payload(snapshot))

    def stream(
        self,
        room_id: str,
        opened: Optional[Callable[[requests.Response], None]] = None,
    ) -> Iterator[StreamEvent]:
        """Yield ``(event, path, data)`` for server-sent events.

        ``put`` and ``patch`` carry data; ``keep-alive`` events come through
        with an empty path so a consumer can check whether to stop. ``opened``
        receives the live response, which may be closed from another thread
        to end the stream.
        """

        try:
            response = self._session.get(
                self._url(f"rooms/{room_id}"),
                params=self._params(),
                headers={"Accept": "text/event-stream"},
                stream=True,
                timeout=(self.settings.timeout, None),
            )
        except requests.RequestException as exc:
            raise ReplicationError("Could not reach the Realtime Database.") from exc

        if response.status_code != 200:
            raise ReplicationError(f"Stream refused with HTTP {response.status_code}.")
        if opened is not None:
            opened(response)

        try:
            yield from self._parse_events(response.iter_lines())
        except requests.RequestException as exc:
            raise ReplicationError("Realtime Database stream interrupted.") from exc
        finally:
            response.close()

    @staticmethod
    def _parse_events(lines: Iterator[bytes]) -> Iterator[StreamEvent]:
        event: Optional[str] = None
        for line in lines:
            if line.startswith(b"event:"):
                event = line[len(b"event:"):].strip().decode("utf-8")
                continue
            if not line.startswith(b"data:") or event is None:
                continue

            raw = line[len(b"data:"):].strip()
            kind, event = event, None
            if kind in {"cancel", "auth_revoked"}:
                raise ReplicationError(f"Stream closed by server ({kind}).")
            if kind == "keep-alive":
                yield kind, "", None
            elif kind in {"put", "patch"}:
                try:
                    body = decode(raw)
                except ProtocolError as exc:
                    raise ReplicationError("Unexpected event from the Realtime Database.") from exc
                if not isinstance(body, dict):
                    raise ReplicationError("Unexpected event from the Realtime Database.")
                yield kind, body.get("path", "/"), body.get("data")

    def _url(self, path: str) -> str:
        return f"{self.settings.database_url}/{path}.json"

    def _params(self) -> Dict[str, str]:
        if self.settings.auth_token:
            return {"auth": self.settings.auth_token}
        return {}

    def _request(self, method: str, path: str, payload: Any = None) -> Any:
        # Minimal wrapper over the REST call
        kwargs: Dict[str, Any] = {"params": self._params(), "timeout": self.settings.timeout}
        if method != "GET":
            kwargs["data"] = encode(payload)
            kwargs["headers"] = {"Content-Type": "application/json"}
        try:
            response = self._session.request(method, self._url(path), **kwargs)
        except requests.RequestException as exc:
            raise ReplicationError("Could not reach the Realtime Database.") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ReplicationError("Unexpected response from the Realtime Database.") from exc

        if response.status_code != 200:
            raise ReplicationError(self._decode_error(data))

        return data

    @staticmethod
    def _decode_error(message: Any) -> str:
        # Map database errors to friendly text
        if isinstance(message, dict) and isinstance(message.get("error"), str):
            error = message["error"]
        else:
            return "Realtime Database request failed."

        error_map = {
            "Permission denied": "This room is not accessible with the current credentials.",
            "Auth token is expired": "The database token expired. Sign in again.",
            "Could not parse auth token.": "The database token is invalid.",
        }
        return error_map.get(error, error)


def _stored_form(game: Any) -> Any:
    # The database never stores null members
    if isinstance(game, dict):
        return {key: value for key, value in game.items() if value is not None}
    return game


class RoomMirror:
    """Fire-and-forget publisher plus a listener for one room.

    ``publish`` only enqueues, so applying a move never waits on the
    network. Incoming game payloads are queued for the game loop to pick up
    with :meth:`get_update`; writes this mirror made itself are dropped when
    they echo back.
    """

    def __init__(self, client: FirebaseRoomClient, room_id: str, echo_window: int = 8) -> None:
        self.client = client
        self.room_id = room_id
        self.guest_joined = threading.Event()
        self._outbox: "queue.Queue[Optional[GameSnapshot]]" = queue.Queue()
        self._incoming: "queue.Queue[Message]" = queue.Queue()
        self._sent: Deque[Message] = deque(maxlen=echo_window)
        self._sent_lock = threading.Lock()
        self._closed = threading.Event()
        self._response: Optional[requests.Response] = None
        self._response_lock = threading.Lock()
        self._publisher = threading.Thread(target=self._publish_loop, name=f"publish-{room_id}", daemon=True)
        self._listener = threading.Thread(target=self._listen_loop, name=f"listen-{room_id}", daemon=True)

    def start(self, listen: bool = True) -> "RoomMirror":
        if not self._publisher.is_alive():
            self._publisher.start()
        if listen and not self._listener.is_alive():
            self._listener.start()
        return self

    def publish(self, snapshot: GameSnapshot) -> None:
        self._outbox.put(snapshot)

    def remember(self, snapshot: GameSnapshot) -> None:
        """Record a state this side wrote so its echo is not applied again."""

        with self._sent_lock:
            self._sent.append(_stored_form(snapshot_to_payload(snapshot)))

    def get_update(self, block: bool = False, timeout: Optional[float] = None) -> Optional[Message]:
        try:
            return self._incoming.get(block, timeout)
        except queue.Empty:
            return None

    def close(self, timeout: Optional[float] = 2.0) -> None:
        """Stop both threads, flushing the newest pending snapshot first."""

        self._closed.set()
        self._outbox.put(None)
        with self._response_lock:
            response, self._response = self._response, None
        if response is not None:
            response.close()

        current = threading.current_thread()
        for thread in (self._publisher, self._listener):
            if thread.is_alive() and thread is not current:
                thread.join(timeout)

    def _publish_loop(self) -> None:
        running = True
        while running:
            snapshot = self._outbox.get()
            if snapshot is None:
                return
            # Only the newest pending snapshot matters; a close still flushes it
            while True:
                try:
                    newer = self._outbox.get_nowait()
                except queue.Empty:
                    break
                if newer is None:
                    running = False
                    break
                snapshot = newer

            self.remember(snapshot)
            try:
                self.client.publish(self.room_id, snapshot)
            except ReplicationError as exc:
                LOG.warning("Could not publish state for room %s: %s", self.room_id, exc)

    def _attach(self, response: requests.Response) -> None:
        with self._response_lock:
            if not self._closed.is_set():
                self._response = response
                return
        response.close()

    def _listen_loop(self) -> None:
        try:
            for event, path, data in self.client.stream(self.room_id, opened=self._attach):
                if self._closed.is_set():
                    break
                if event != "keep-alive":
                    self.handle_event(path, data)
        except ReplicationError as exc:
            if self._closed.is_set():
                return
            LOG.warning("Stopped listening to room %s: %s", self.room_id, exc)
            self._incoming.put({"type": "connection_closed"})
        except Exception:  # pragma: no cover - unexpected failure
            if not self._closed.is_set():
                LOG.exception("Listener for room %s crashed", self.room_id)

    def handle_event(self, path: str, data: Any) -> None:
        game: Any = None
        if path == "/":
            if not isinstance(data, dict):
                return
            if (data.get("players") or {}).get("guest"):
                self.guest_joined.set()
            game = data.get("game")
        elif path == "/players/guest":
            if data:
                self.guest_joined.set()
            return
        elif path == "/game":
            game = data
        elif path.startswith("/game/"):
            # Partial update; read the whole node back
            try:
                game = self.client.fetch_game(self.room_id)
            except ReplicationError as exc:
                LOG.warning("Could not refresh game for room %s: %s", self.room_id, exc)
                return
        else:
            return

        if game is None:
            return
        with self._sent_lock:
            if _stored_form(game) in self._sent:
                return
        self._incoming.put({"type": "game", "game": game})
