"""
JSON-file persistence for leaderboards and remembered player names.
"""
import json
import logging
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from .models import LeaderboardEntry

logger = logging.getLogger(__name__)


class LeaderboardRepository(Protocol):
    """Storage the game controller records results through."""

    def load_leaderboard(self, bucket: int) -> List[LeaderboardEntry]:
        ...

    def save_leaderboard(self, bucket: int, entries: List[LeaderboardEntry]) -> None:
        ...

    def load_player_name(self, key: str) -> Optional[str]:
        ...

    def save_player_name(self, key: str, name: str) -> None:
        ...


class JsonLeaderboardStore:
    """
    Keeps every leaderboard bucket and player name in one JSON document.

    Layout: ``{"leaderboards": {"20": [entry, ...]}, "player_names": {key: name}}``.
    A missing or unreadable file reads as empty. Writes are serialised so
    worker threads never interleave a read-modify-write.
    """

    def __init__(self, path: str = "./data/leaderboard.json"):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, dict]:
        document = {"leaderboards": {}, "player_names": {}}
        if not self.path.exists():
            return document

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt leaderboard file {self.path}: {e}")
            return document
        except OSError as e:
            logger.error(f"Failed to read leaderboard file {self.path}: {e}")
            return document

        if isinstance(data, dict):
            if isinstance(data.get("leaderboards"), dict):
                document["leaderboards"] = data["leaderboards"]
            if isinstance(data.get("player_names"), dict):
                document["player_names"] = data["player_names"]
        return document

    def _write(self, document: Dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(document, f, indent=2)

    def load_leaderboard(self, bucket: int) -> List[LeaderboardEntry]:
        rows = self._read()["leaderboards"].get(str(bucket), [])
        entries = []
        for row in rows:
            try:
                entries.append(LeaderboardEntry.from_dict(row))
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed leaderboard row in bucket {bucket}: {e}")
        return entries

    def save_leaderboard(self, bucket: int, entries: List[LeaderboardEntry]) -> None:
        with self._lock:
            document = self._read()
            document["leaderboards"][str(bucket)] = [entry.to_dict() for entry in entries]
            self._write(document)
        logger.info(
            f"Saved {len(entries)} leaderboard entries for bucket {bucket}",
            extra={
                'event_type': 'leaderboard_saved',
                'bucket': bucket,
                'entry_count': len(entries),
                'timestamp': time.time()
            }
        )

    def load_player_name(self, key: str) -> Optional[str]:
        name = self._read()["player_names"].get(str(key))
        return name if isinstance(name, str) and name.strip() else None

    def save_player_name(self, key: str, name: str) -> None:
        with self._lock:
            document = self._read()
            document["player_names"][str(key)] = name
            self._write(document)
