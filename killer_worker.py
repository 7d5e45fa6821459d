# killer_worker.py
"""
Worker de génération Killer Sudoku

La génération tourne sur un thread dédié, séparé de l'interface. L'appelant
envoie une requête {"difficulty": ...} et lit une file de messages :

    {"type": "status",  "message": str}    0..n fois
    {"type": "success", "puzzle": {...}}   ou
    {"type": "error",   "message": str}    exactement une fois, en dernier

Aucun état partagé : la grille est construite côté worker et transmise
par valeur (dict) dans le message final.
"""

from typing import Callable, Iterator, Optional
import logging
import queue
import threading

from killer_generator import MAX_ATTEMPTS, KillerSudokuError, Puzzle, generate_puzzle
from killer_solver import count_solutions

logger = logging.getLogger(__name__)

TERMINAL_TYPES = ("success", "error")

_STOP = object()


def status_message(message: str) -> dict:
    return {"type": "status", "message": message}


def success_message(puzzle: Puzzle) -> dict:
    return {"type": "success", "puzzle": puzzle.to_dict()}


def error_message(message: str) -> dict:
    return {"type": "error", "message": message}


def is_terminal(message: dict) -> bool:
    return message.get("type") in TERMINAL_TYPES


def run_generation(request: dict, emit: Callable[[dict], None], cancel_event=None, **options) -> None:
    """
    Point d'entrée du worker : traite une requête et émet les messages.
    Ne lève jamais ; toute exception devient un message "error".
    `options` est passé à generate_puzzle (max_attempts, verifier, ...).
    """
    try:
        puzzle = generate_puzzle(
            request.get("difficulty"),
            seed=request.get("seed"),
            on_status=lambda text: emit(status_message(text)),
            cancel_event=cancel_event,
            **options,
        )
        final = success_message(puzzle)
    except KillerSudokuError as exc:
        final = error_message(str(exc))
    except Exception as exc:
        logger.exception("Unexpected error while generating %r", request)
        final = error_message(str(exc) or exc.__class__.__name__)
    emit(final)


class GenerationJob:
    """Une requête en cours : sa file de messages et son drapeau d'annulation."""

    def __init__(self, request: dict):
        self.request = request
        self.messages: "queue.Queue[dict]" = queue.Queue()
        self.cancel_event = threading.Event()

    def cancel(self) -> None:
        # pris en compte entre deux tentatives et pendant la vérification
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def iter_messages(self, timeout: Optional[float] = None) -> Iterator[dict]:
        """Messages dans l'ordre, jusqu'au message final inclus."""
        while True:
            message = self.messages.get(timeout=timeout)
            yield message
            if is_terminal(message):
                return

    def result(self, timeout: Optional[float] = None) -> dict:
        """Attend et renvoie le message final (les statuts sont consommés)."""
        final = None
        for message in self.iter_messages(timeout=timeout):
            final = message
        return final


class GeneratorWorker:
    """
    Thread unique qui sert les requêtes une par une (ordre FIFO).

    - request(difficulty, seed=None) -> GenerationJob
    - close() : arrête le thread après la requête en cours
    """

    def __init__(self, max_attempts: int = MAX_ATTEMPTS, verifier=count_solutions):
        self._options = {"max_attempts": max_attempts, "verifier": verifier}
        self._requests: "queue.Queue" = queue.Queue()
        self._thread = threading.Thread(target=self._serve, name="killer-generator", daemon=True)
        self._thread.start()

    def request(self, difficulty: str, seed=None) -> GenerationJob:
        job = GenerationJob({"difficulty": difficulty, "seed": seed})
        self._requests.put(job)
        return job

    def close(self, timeout: Optional[float] = None) -> None:
        self._requests.put(_STOP)
        self._thread.join(timeout)

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _serve(self) -> None:
        while True:
            job = self._requests.get()
            if job is _STOP:
                break
            logger.debug("Serving request %r", job.request)
            run_generation(job.request, job.messages.put, cancel_event=job.cancel_event, **self._options)


# small CLI test
if __name__ == "__main__":
    import sys

    logging.basicConfig(level=logging.INFO)
    difficulty = sys.argv[1] if len(sys.argv) > 1 else "Medium"
    with GeneratorWorker() as worker:
        for msg in worker.request(difficulty).iter_messages():
            if msg["type"] == "status":
                print(msg["message"])
            elif msg["type"] == "success":
                print("OK :", len(msg["puzzle"]["cages"]), "cages,", len(msg["puzzle"]["givens"]), "givens")
            else:
                print("Erreur :", msg["message"])
