# killer_solver.py
"""
Solveur Killer Sudoku (9x9, cages à somme)

Fournit :
- Cell, Cage : types de base (coordonnée (r,c), cage = cellules + somme)
- cell_key / parse_cell_key : sérialisation "r-c" des coordonnées
- is_valid(board, row, col, digit) : règle ligne / colonne / bloc 3x3
- generate_solution(rng=None) : grille complète aléatoire (backtracking)
- class KillerPuzzle : grille partielle + cages, compte les solutions
- function count_solutions(board, cages, limit=2, cancel_event=None)
    => nombre de solutions, borné par limit (0, 1 ou 2 avec la valeur par défaut)

Le compteur parcourt les cases dans l'ordre 0..80 (ligne par ligne) et
s'arrête dès que `limit` solutions sont trouvées : le générateur n'a besoin
que de distinguer "exactement une" de "plusieurs". Certaines grilles (peu de
givens, cases hors cage) demandent un parcours très long : `cancel_event` est
consulté toutes les CANCEL_CHECK_INTERVAL positions et lève SearchCancelled.
"""

from dataclasses import dataclass
from typing import Dict, Tuple, List, Optional, Sequence
import random

Cell = Tuple[int, int]
Board = List[List[int]]

SIZE = 9
BOX = 3
BLANK = 0
DIGITS = tuple(range(1, SIZE + 1))
DEFAULT_LIMIT = 2
CANCEL_CHECK_INTERVAL = 4096

_FULL = (1 << (SIZE + 1)) - 2  # bits 1..9


class SearchCancelled(Exception):
    """Recherche interrompue via cancel_event."""


@dataclass(frozen=True)
class Cage:
    """Cellules dans l'ordre de croissance + somme cible (immuable)."""
    cells: Tuple[Cell, ...] = ()
    sum: int = 0

    def __post_init__(self):
        object.__setattr__(self, "cells", tuple(tuple(cell) for cell in self.cells))

    def __len__(self) -> int:
        return len(self.cells)

    def __contains__(self, cell) -> bool:
        return cell in self.cells

    def to_dict(self) -> dict:
        return {"cells": [{"r": r, "c": c} for (r, c) in self.cells], "sum": self.sum}

    @classmethod
    def from_dict(cls, obj: dict) -> "Cage":
        cells = [(int(x["r"]), int(x["c"])) for x in obj["cells"]]
        return cls(cells=cells, sum=int(obj["sum"]))


def cell_key(cell: Cell) -> str:
    """(r,c) -> "r-c" (format persisté, ne pas changer)."""
    r, c = cell
    return f"{r}-{c}"


def parse_cell_key(key: str) -> Cell:
    """ "r-c" -> (r,c). Lève ValueError si la clé est mal formée."""
    parts = key.split("-")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"invalid cell key: {key!r}")
    r, c = int(parts[0]), int(parts[1])
    if not (0 <= r < SIZE and 0 <= c < SIZE):
        raise ValueError(f"cell key out of range: {key!r}")
    return r, c


def empty_board() -> Board:
    return [[BLANK] * SIZE for _ in range(SIZE)]


def is_valid(board: Board, row: int, col: int, digit: int) -> bool:
    # Vérifie ligne, colonne et bloc 3x3
    if digit in board[row]:
        return False
    for i in range(SIZE):
        if board[i][col] == digit:
            return False
    br = row - row % BOX
    bc = col - col % BOX
    for i in range(br, br + BOX):
        for j in range(bc, bc + BOX):
            if board[i][j] == digit:
                return False
    return True


def generate_solution(rng: Optional[random.Random] = None) -> Board:
    """
    Remplit une grille vide par backtracking, l'ordre des chiffres étant
    mélangé à chaque case. Réussit toujours.
    """
    rng = rng or random.Random()
    board = empty_board()

    def fill(pos: int) -> bool:
        if pos == SIZE * SIZE:
            return True
        row, col = divmod(pos, SIZE)
        digits = list(DIGITS)
        rng.shuffle(digits)
        for digit in digits:
            if is_valid(board, row, col, digit):
                board[row][col] = digit
                if fill(pos + 1):
                    return True
                board[row][col] = BLANK
        return False

    fill(0)
    return board


def is_solved(board: Board) -> bool:
    """True si chaque ligne, colonne et bloc contient 1..9 exactement une fois."""
    expected = set(DIGITS)
    for i in range(SIZE):
        if set(board[i]) != expected:
            return False
        if {board[r][i] for r in range(SIZE)} != expected:
            return False
    for br in range(0, SIZE, BOX):
        for bc in range(0, SIZE, BOX):
            box = {board[br + i][bc + j] for i in range(BOX) for j in range(BOX)}
            if box != expected:
                return False
    return True


def satisfies_cages(board: Board, cages: Sequence[Cage]) -> bool:
    """Chaque cage : chiffres distincts et somme exacte sur la grille donnée."""
    for cage in cages:
        values = [board[r][c] for r, c in cage.cells]
        if len(set(values)) != len(values) or sum(values) != cage.sum:
            return False
    return True


def _build_sum_bounds() -> List[List[Tuple[int, int]]]:
    # bounds[mask][k] = (somme min, somme max) de k chiffres distincts pris dans mask
    bounds = []
    for mask in range(1 << (SIZE + 1)):
        avail = [d for d in DIGITS if mask & (1 << d)]
        row = []
        for k in range(SIZE + 1):
            if k > len(avail):
                row.append((1, 0))  # impossible : min > max
            else:
                row.append((sum(avail[:k]), sum(avail[len(avail) - k:])))
        bounds.append(row)
    return bounds


_SUM_BOUNDS = _build_sum_bounds()


class KillerPuzzle:
    def __init__(self, board: Sequence[Sequence[int]], cages: Sequence[Cage]):
        self.board = [list(row) for row in board]
        self.cages = list(cages)

        # map cell -> cage index
        self.cell_cage: Dict[Cell, int] = {}
        for idx, cage in enumerate(self.cages):
            for cell in cage.cells:
                self.cell_cage[cell] = idx

    def count_solutions(self, limit: int = DEFAULT_LIMIT, cancel_event=None) -> int:
        """
        Compte les complétions valides (Sudoku + cages), arrêt dès `limit`.
        La grille d'origine n'est pas modifiée.

        cancel_event : objet avec is_set() ; s'il est levé pendant le parcours,
        SearchCancelled est levée (vérifié toutes les CANCEL_CHECK_INTERVAL positions).
        """
        grid = [v for row in self.board for v in row]
        rows = [0] * SIZE
        cols = [0] * SIZE
        boxes = [0] * SIZE
        cage_of = [-1] * (SIZE * SIZE)
        cage_used = [0] * len(self.cages)
        cage_total = [0] * len(self.cages)
        cage_left = [len(cage) for cage in self.cages]
        targets = [cage.sum for cage in self.cages]

        for (r, c), idx in self.cell_cage.items():
            cage_of[r * SIZE + c] = idx

        # givens : doivent déjà respecter toutes les règles
        empties = []
        for pos, digit in enumerate(grid):
            if digit == BLANK:
                empties.append(pos)
                continue
            r, c = divmod(pos, SIZE)
            b = (r // BOX) * BOX + c // BOX
            bit = 1 << digit
            if (rows[r] | cols[c] | boxes[b]) & bit:
                return 0
            rows[r] |= bit
            cols[c] |= bit
            boxes[b] |= bit
            k = cage_of[pos]
            if k >= 0:
                if cage_used[k] & bit:
                    return 0
                cage_used[k] |= bit
                cage_total[k] += digit
                cage_left[k] -= 1
                if cage_total[k] > targets[k]:
                    return 0
        for k, left in enumerate(cage_left):
            if left == 0 and cage_total[k] != targets[k]:
                return 0

        count = 0
        nodes = 0

        def fits_cage(k: int, digit: int) -> bool:
            total = cage_total[k] + digit
            if total > targets[k]:
                return False
            left = cage_left[k] - 1
            remaining = targets[k] - total
            if left == 0:
                return remaining == 0
            lo, hi = _SUM_BOUNDS[_FULL & ~(cage_used[k] | (1 << digit))][left]
            return lo <= remaining <= hi

        def solve(i: int) -> None:
            nonlocal count, nodes
            nodes += 1
            if cancel_event is not None and nodes % CANCEL_CHECK_INTERVAL == 0 and cancel_event.is_set():
                raise SearchCancelled()
            if i == len(empties):
                count += 1
                return
            pos = empties[i]
            r, c = divmod(pos, SIZE)
            b = (r // BOX) * BOX + c // BOX
            k = cage_of[pos]
            taken = rows[r] | cols[c] | boxes[b]
            if k >= 0:
                taken |= cage_used[k]
            for digit in DIGITS:
                bit = 1 << digit
                if taken & bit:
                    continue
                if k >= 0 and not fits_cage(k, digit):
                    continue
                rows[r] |= bit
                cols[c] |= bit
                boxes[b] |= bit
                if k >= 0:
                    cage_used[k] |= bit
                    cage_total[k] += digit
                    cage_left[k] -= 1
                solve(i + 1)
                rows[r] &= ~bit
                cols[c] &= ~bit
                boxes[b] &= ~bit
                if k >= 0:
                    cage_used[k] &= ~bit
                    cage_total[k] -= digit
                    cage_left[k] += 1
                if count >= limit:
                    return

        if limit > 0:
            solve(0)
        return min(count, limit)


def count_solutions(board: Sequence[Sequence[int]], cages: Sequence[Cage],
                    limit: int = DEFAULT_LIMIT, cancel_event=None) -> int:
    """
    Wrapper utilitaire attendu par le générateur.

    - board: grille 9x9 (0 = vide), givens déjà placés
    - cages: liste de Cage
    - limit: arrêt dès que ce nombre de solutions est atteint
    - cancel_event: interrompt le parcours (SearchCancelled)

    Retour: min(nombre de solutions, limit)
    """
    return KillerPuzzle(board, cages).count_solutions(limit=limit, cancel_event=cancel_event)


# quick CLI test when run directly
if __name__ == "__main__":
    rng = random.Random(7)
    sol = generate_solution(rng)
    for row in sol:
        print(" ".join(str(x) for x in row))
    singles = [Cage(cells=[(r, c)], sum=sol[r][c]) for r in range(SIZE) for c in range(SIZE)]
    print("Solutions (cages 1x1):", count_solutions(empty_board(), singles))
