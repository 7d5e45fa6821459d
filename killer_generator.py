# killer_generator.py
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging
import random

from killer_solver import (
    DEFAULT_LIMIT, SIZE, Board, Cage, Cell,
    cell_key, count_solutions, empty_board, generate_solution, parse_cell_key,
    SearchCancelled, satisfies_cages,
)

logger = logging.getLogger(__name__)

DIFFICULTIES = ("Easy", "Medium", "Hard", "Expert")
MAX_CAGE_SIZE = 4
MAX_ATTEMPTS = 50
MEDIUM_BOX_BIAS = 0.9

Verifier = Callable[..., int]
Grid = Tuple[Tuple[int, ...], ...]


class KillerSudokuError(Exception):
    """Base des erreurs du générateur."""


class GenerationExhausted(KillerSudokuError):
    def __init__(self, attempts: int):
        super().__init__("Failed to generate unique puzzle within attempt limit.")
        self.attempts = attempts


class GenerationCancelled(KillerSudokuError):
    def __init__(self, attempts: int):
        super().__init__(f"Generation cancelled after {attempts} attempt(s).")
        self.attempts = attempts


class GenerationState(Enum):
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DifficultyProfile:
    givens_count: int
    min_cage_size: int
    uncaged_probability: float


def difficulty_profile(difficulty: str, rng: Optional[random.Random] = None) -> DifficultyProfile:
    """
    Tire les paramètres d'une tentative pour la difficulté donnée.
    Easy : 4-9 givens ; Medium : aucun ; Hard : cages de 2+ cases ;
    Expert : 0-5 givens placés sur des cases hors cage.
    """
    rng = rng or random.Random()
    if difficulty == "Easy":
        return DifficultyProfile(rng.randint(4, 9), 1, 0.0)
    if difficulty == "Medium":
        return DifficultyProfile(0, 1, 0.0)
    if difficulty == "Hard":
        return DifficultyProfile(0, 2, 0.0)
    if difficulty == "Expert":
        givens_count = rng.randint(0, 5)
        if givens_count > 0:
            uncaged = 0.5 + givens_count * 0.05
        else:
            uncaged = 0.35
        return DifficultyProfile(givens_count, 2, uncaged)
    raise ValueError(f"unknown difficulty: {difficulty!r}")


def neighbors(cell: Cell) -> List[Cell]:
    # haut, bas, gauche, droite
    r, c = cell
    nbrs = [(r - 1, c), (r + 1, c), (r, c - 1), (r, c + 1)]
    return [(nr, nc) for nr, nc in nbrs if 0 <= nr < SIZE and 0 <= nc < SIZE]


def same_box(a: Cell, b: Cell) -> bool:
    return a[0] // 3 == b[0] // 3 and a[1] // 3 == b[1] // 3


def generate_cages(solution: Board, difficulty: str = "Medium",
                   uncaged_probability: float = 0.0, min_cage_size: int = 1,
                   rng: Optional[random.Random] = None) -> List[Cage]:
    """
    Découpe la grille en cages par croissance aléatoire (parcours ligne par
    ligne). Chaque cage grandit depuis sa dernière case vers un voisin libre ;
    en Medium on reste dans le bloc 3x3 courant 9 fois sur 10.

    Une cage restée trop petite est fusionnée dans une cage voisine déjà
    existante ; s'il n'y en a pas, elle est gardée telle quelle.
    """
    rng = rng or random.Random()
    groups: List[List[Cell]] = []
    owner: Dict[Cell, int] = {}
    visited = set()

    for r in range(SIZE):
        for c in range(SIZE):
            start = (r, c)
            if start in visited:
                continue

            # case hors cage (Expert)
            if rng.random() < uncaged_probability:
                visited.add(start)
                continue

            target_size = rng.randint(min_cage_size, MAX_CAGE_SIZE)
            group = [start]
            visited.add(start)
            current = start

            while len(group) < target_size:
                free = [n for n in neighbors(current) if n not in visited]
                candidates = free
                if difficulty == "Medium":
                    in_box = [n for n in free if same_box(n, current)]
                    if in_box and rng.random() < MEDIUM_BOX_BIAS:
                        candidates = in_box
                if not candidates:
                    break
                current = rng.choice(candidates)
                visited.add(current)
                group.append(current)

            if len(group) < min_cage_size:
                host = None
                for n in neighbors(group[0]):
                    if n in owner:
                        host = owner[n]
                        break
                if host is not None:
                    groups[host].append(group[0])
                    owner[group[0]] = host
                    continue

            for cell in group:
                owner[cell] = len(groups)
            groups.append(group)

    return [Cage(cells=g, sum=sum(solution[r][c] for r, c in g)) for g in groups]


def uncaged_cells(cages: Sequence[Cage]) -> List[Cell]:
    caged = {cell for cage in cages for cell in cage.cells}
    return [(r, c) for r in range(SIZE) for c in range(SIZE) if (r, c) not in caged]


def select_givens(solution: Board, cages: Sequence[Cage], difficulty: str,
                  givens_count: int, rng: Optional[random.Random] = None) -> Tuple[Board, List[Cell]]:
    """
    Révèle `givens_count` cases de la solution sur la grille joueur.
    En Expert seules les cases hors cage sont candidates ; s'il y en a moins
    que demandé, on en donne moins.
    """
    rng = rng or random.Random()
    board = empty_board()
    givens: List[Cell] = []
    if givens_count <= 0:
        return board, givens

    if difficulty == "Expert":
        candidates = uncaged_cells(cages)
    else:
        candidates = [(r, c) for r in range(SIZE) for c in range(SIZE)]
    rng.shuffle(candidates)

    for r, c in candidates[:min(givens_count, len(candidates))]:
        board[r][c] = solution[r][c]
        givens.append((r, c))
    return board, givens


def empty_notes() -> List[List[dict]]:
    return [[{"center": [], "corner": [], "colors": []} for _ in range(SIZE)] for _ in range(SIZE)]


@dataclass(frozen=True)
class Puzzle:
    """
    Puzzle final : grille joueur, solution, cages, givens.
    Immuable : grilles et cages sont copiées en tuples à la construction.
    """
    board: Grid
    solution: Grid
    cages: Tuple[Cage, ...]
    difficulty: str
    givens: Tuple[Cell, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "board", tuple(tuple(row) for row in self.board))
        object.__setattr__(self, "solution", tuple(tuple(row) for row in self.solution))
        object.__setattr__(self, "cages", tuple(self.cages))
        object.__setattr__(self, "givens", tuple(tuple(cell) for cell in self.givens))

    def to_dict(self) -> dict:
        # format du message "success" et de la banque de grilles
        return {
            "board": [list(row) for row in self.board],
            "solved": [list(row) for row in self.solution],
            "cages": [cage.to_dict() for cage in self.cages],
            "notes": empty_notes(),
            "difficulty": self.difficulty,
            "givens": [cell_key(cell) for cell in self.givens],
        }

    @classmethod
    def from_dict(cls, obj: dict) -> "Puzzle":
        return cls(
            board=[[int(v) for v in row] for row in obj["board"]],
            solution=[[int(v) for v in row] for row in obj["solved"]],
            cages=[Cage.from_dict(c) for c in obj["cages"]],
            difficulty=obj["difficulty"],
            givens=tuple(parse_cell_key(k) for k in obj.get("givens", [])),
        )


def build_candidate(solution: Board, difficulty: str,
                    rng: Optional[random.Random] = None) -> Tuple[Board, List[Cage], List[Cell]]:
    """Une tentative sans vérification : profil, cages, givens."""
    rng = rng or random.Random()
    profile = difficulty_profile(difficulty, rng)
    cages = generate_cages(solution, difficulty,
                           uncaged_probability=profile.uncaged_probability,
                           min_cage_size=profile.min_cage_size, rng=rng)
    board, givens = select_givens(solution, cages, difficulty, profile.givens_count, rng)
    return board, cages, givens


def generate_puzzle(difficulty: str = "Medium", max_attempts: int = MAX_ATTEMPTS,
                    rng: Optional[random.Random] = None, seed=None,
                    on_status: Optional[Callable[[str], None]] = None,
                    on_state: Optional[Callable[[GenerationState, int], None]] = None,
                    verifier: Verifier = count_solutions,
                    cancel_event=None) -> Puzzle:
    """
    Génère un Killer Sudoku à solution unique.

    Chaque tentative : solution -> cages -> givens -> vérification (limit=2).
    Exactement une solution => Puzzle. Sinon on recommence, jusqu'à
    `max_attempts` ; au-delà, GenerationExhausted.

    - on_status(message) : messages de progression (numéro de tentative inclus)
    - on_state(state, attempt) : transitions ATTEMPTING/RETRYING/SUCCESS/FAILED
    - verifier(board, cages, limit=..., cancel_event=...) : compteur de solutions
    - cancel_event : objet avec is_set(), consulté entre deux tentatives et
      pendant la vérification (le verifier lève SearchCancelled)
    """
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"unknown difficulty: {difficulty!r}")
    if rng is None:
        rng = random.Random(seed)

    def status(message: str) -> None:
        logger.debug(message)
        if on_status:
            on_status(message)

    def transition(state: GenerationState, attempt: int) -> None:
        if on_state:
            on_state(state, attempt)

    for attempt in range(1, max_attempts + 1):
        if cancel_event is not None and cancel_event.is_set():
            transition(GenerationState.CANCELLED, attempt - 1)
            raise GenerationCancelled(attempt - 1)

        transition(GenerationState.ATTEMPTING, attempt)
        status(f"Tentative {attempt}/{max_attempts} : génération de la grille...")

        solution = generate_solution(rng)
        board, cages, givens = build_candidate(solution, difficulty, rng)

        # une cage qui répète un chiffre de la solution ne peut pas la décrire
        if not satisfies_cages(solution, cages):
            logger.debug("Attempt %d: repeated digit inside a cage", attempt)
            transition(GenerationState.RETRYING, attempt)
            continue

        status(f"Tentative {attempt} : vérification de l'unicité...")
        try:
            solutions = verifier(board, cages, limit=DEFAULT_LIMIT, cancel_event=cancel_event)
        except SearchCancelled:
            transition(GenerationState.CANCELLED, attempt)
            logger.info("%s generation cancelled during attempt %d", difficulty, attempt)
            raise GenerationCancelled(attempt) from None

        if solutions == 1:
            transition(GenerationState.SUCCESS, attempt)
            logger.info("%s puzzle generated in %d attempt(s), %d cages, %d givens",
                        difficulty, attempt, len(cages), len(givens))
            return Puzzle(board=board, solution=solution, cages=cages,
                          difficulty=difficulty, givens=tuple(givens))
        transition(GenerationState.RETRYING, attempt)

    transition(GenerationState.FAILED, max_attempts)
    logger.warning("No unique %s puzzle after %d attempts", difficulty, max_attempts)
    raise GenerationExhausted(max_attempts)


# small CLI test
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    puzzle = generate_puzzle("Medium", seed=42, on_status=print)
    print("Cages:", len(puzzle.cages), "- tailles:", sorted(len(c) for c in puzzle.cages))
    print("Givens count:", len(puzzle.givens))
    for row in puzzle.solution:
        print(" ".join(str(x) for x in row))
