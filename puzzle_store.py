# puzzle_store.py
"""
Banque de grilles (fichier JSON local)

Même interface que la banque partagée :
- get_random_puzzle(difficulty, exclude_id=None) -> {"id", "data"} ou None
- save_puzzle(difficulty, data) -> id ou None

Les erreurs d'accès sont journalisées et renvoient None : la banque est
optionnelle, on peut toujours générer une grille à la place.

Une même instance peut servir plusieurs threads (sessions Streamlit) :
les écritures sont sérialisées par un verrou.
"""

from pathlib import Path
from typing import Callable, Optional, Tuple
import json
import logging
import os
import random
import threading

from killer_generator import generate_puzzle

logger = logging.getLogger(__name__)

DEFAULT_PATH = os.environ.get("KILLER_PUZZLE_BANK", "puzzles.json")


class PuzzleStore:
    def __init__(self, path=DEFAULT_PATH, rng: Optional[random.Random] = None):
        self.path = Path(path)
        self.rng = rng or random.Random()
        self._lock = threading.Lock()

    def _load(self) -> dict:
        if not self.path.exists():
            return {"next_id": 1, "puzzles": []}
        return json.loads(self.path.read_text(encoding="utf-8"))

    def _dump(self, doc: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(doc), encoding="utf-8")
        tmp.replace(self.path)

    def get_random_puzzle(self, difficulty: str, exclude_id: Optional[int] = None) -> Optional[dict]:
        try:
            doc = self._load()
        except (OSError, ValueError) as exc:
            logger.error("Error reading puzzle bank %s: %s", self.path, exc)
            return None
        pool = [p for p in doc.get("puzzles", [])
                if p.get("difficulty") == difficulty and p.get("id") != exclude_id]
        if not pool:
            return None
        entry = self.rng.choice(pool)
        return {"id": entry["id"], "data": entry["data"]}

    def save_puzzle(self, difficulty: str, data: dict) -> Optional[int]:
        try:
            with self._lock:
                doc = self._load()
                puzzle_id = int(doc.get("next_id", 1))
                doc.setdefault("puzzles", []).append({"id": puzzle_id, "difficulty": difficulty, "data": data})
                doc["next_id"] = puzzle_id + 1
                self._dump(doc)
        except (OSError, ValueError, TypeError) as exc:
            logger.error("Error saving puzzle to %s: %s", self.path, exc)
            return None
        return puzzle_id

    def count(self, difficulty: Optional[str] = None) -> int:
        try:
            puzzles = self._load().get("puzzles", [])
        except (OSError, ValueError):
            return 0
        return sum(1 for p in puzzles if difficulty is None or p.get("difficulty") == difficulty)


def obtain_puzzle(store: PuzzleStore, difficulty: str, exclude_id: Optional[int] = None,
                  generate: Optional[Callable[[str], Optional[dict]]] = None,
                  **generate_kwargs) -> Tuple[Optional[int], Optional[dict]]:
    """
    Grille de la banque si possible, sinon nouvelle grille (sauvegardée).

    generate(difficulty) -> payload ou None : producteur de grille (par ex. le
    worker de l'application) ; par défaut generate_puzzle(**generate_kwargs).

    Renvoie (id, payload) ; id vaut None si la sauvegarde a échoué,
    (None, None) si generate n'a rien produit.
    """
    found = store.get_random_puzzle(difficulty, exclude_id)
    if found is not None:
        return found["id"], found["data"]
    if generate is None:
        data = generate_puzzle(difficulty, **generate_kwargs).to_dict()
    else:
        data = generate(difficulty)
        if data is None:
            return None, None
    return store.save_puzzle(difficulty, data), data
