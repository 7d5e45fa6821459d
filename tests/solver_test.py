import copy
import dataclasses
import random
import threading
import time

import pytest

from killer_solver import (
    Cage, SIZE, SearchCancelled, cell_key, count_solutions, empty_board, generate_solution,
    is_solved, is_valid, parse_cell_key, satisfies_cages,
)


def row_pair_cages(solution):
    # horizontal dominoes (plus the last column alone): never repeat a digit
    cages = []
    for r in range(SIZE):
        for c in range(0, SIZE, 2):
            cells = [(r, cc) for cc in (c, c + 1) if cc < SIZE]
            cages.append(Cage(cells=cells, sum=sum(solution[r][cc] for _, cc in cells)))
    return cages


def singleton_cages(solution):
    return [Cage(cells=[(r, c)], sum=solution[r][c]) for r in range(SIZE) for c in range(SIZE)]


# ---------- Grid generation ----------


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 42])
def test_generated_solution_is_valid(seed):
    board = generate_solution(random.Random(seed))

    assert len(board) == SIZE
    assert all(len(row) == SIZE for row in board)
    assert is_solved(board)


def test_same_seed_gives_same_solution():
    assert generate_solution(random.Random(99)) == generate_solution(random.Random(99))


def test_different_seeds_usually_differ():
    boards = {tuple(map(tuple, generate_solution(random.Random(s)))) for s in range(5)}
    assert len(boards) > 1


def test_is_valid_checks_row_column_and_box():
    board = empty_board()
    board[0][0] = 5

    assert not is_valid(board, 0, 8, 5)  # same row
    assert not is_valid(board, 8, 0, 5)  # same column
    assert not is_valid(board, 2, 2, 5)  # same box
    assert is_valid(board, 4, 4, 5)
    assert is_valid(board, 0, 1, 6)


def test_is_solved_rejects_incomplete_board(solution):
    board = copy.deepcopy(solution)
    board[3][3] = 0
    assert not is_solved(board)


# ---------- Cage helpers ----------


def test_satisfies_cages(solution):
    good = Cage(cells=[(0, 0), (0, 1)], sum=solution[0][0] + solution[0][1])
    bad_sum = Cage(cells=[(0, 0), (0, 1)], sum=good.sum + 1)

    assert satisfies_cages(solution, [good])
    assert not satisfies_cages(solution, [bad_sum])


def test_satisfies_cages_detects_repeated_digit():
    board = empty_board()
    board[0][0] = 3
    board[4][5] = 3
    assert not satisfies_cages(board, [Cage(cells=[(0, 0), (4, 5)], sum=6)])


def test_cage_is_immutable():
    cage = Cage(cells=[(0, 0), (0, 1)], sum=7)

    assert cage.cells == ((0, 0), (0, 1))
    with pytest.raises(dataclasses.FrozenInstanceError):
        cage.sum = 8


def test_cage_dict_shape():
    cage = Cage(cells=[(0, 0), (0, 1)], sum=7)

    assert cage.to_dict() == {"cells": [{"r": 0, "c": 0}, {"r": 0, "c": 1}], "sum": 7}
    assert Cage.from_dict(cage.to_dict()) == cage


# ---------- Uniqueness counter ----------


def test_full_solution_counts_exactly_once(solution):
    assert count_solutions(solution, row_pair_cages(solution)) == 1


def test_full_solution_without_cages_counts_once(solution):
    assert count_solutions(solution, []) == 1


def test_singleton_cages_pin_every_cell(solution):
    assert count_solutions(empty_board(), singleton_cages(solution)) == 1


def test_empty_board_stops_at_limit():
    assert count_solutions(empty_board(), []) == 2
    assert count_solutions(empty_board(), [], limit=1) == 1
    assert count_solutions(empty_board(), [], limit=4) == 4


def test_loose_cage_is_not_unique():
    assert count_solutions(empty_board(), [Cage(cells=[(0, 0), (0, 1)], sum=3)]) == 2


def test_conflicting_givens_have_no_solution():
    board = empty_board()
    board[0][0] = 5
    board[0][5] = 5
    assert count_solutions(board, []) == 0


def test_given_repeated_inside_cage_has_no_solution():
    board = empty_board()
    board[0][0] = 3
    board[4][5] = 3
    assert count_solutions(board, [Cage(cells=[(0, 0), (4, 5)], sum=10)]) == 0


def test_full_cage_with_wrong_sum_has_no_solution(solution):
    cage = Cage(cells=[(0, 0), (0, 1)], sum=solution[0][0] + solution[0][1] + 1)
    assert count_solutions(solution, [cage]) == 0


def test_cage_sum_is_enforced_on_empty_cells(solution):
    board = copy.deepcopy(solution)
    board[0][0] = 0
    board[0][1] = 0
    target = solution[0][0] + solution[0][1]

    assert count_solutions(board, [Cage(cells=[(0, 0), (0, 1)], sum=target)]) == 1
    assert count_solutions(board, [Cage(cells=[(0, 0), (0, 1)], sum=target + 1)]) == 0


def test_blank_row_with_partial_cage(solution):
    board = copy.deepcopy(solution)
    board[0] = [0] * SIZE
    cage = Cage(cells=[(0, 0), (0, 1)], sum=solution[0][0] + solution[0][1])

    assert count_solutions(board, [cage]) == 1


def test_counter_does_not_mutate_board(solution):
    board = copy.deepcopy(solution)
    for c in range(SIZE):
        board[4][c] = 0
    before = copy.deepcopy(board)

    count_solutions(board, singleton_cages(solution))

    assert board == before


def test_zero_limit_counts_nothing(solution):
    assert count_solutions(solution, [], limit=0) == 0


# ---------- Cell keys ----------


def test_cell_key_round_trip_all_cells():
    cells = {(r, c) for r in range(SIZE) for c in range(SIZE)}
    keys = [cell_key(cell) for cell in cells]

    assert {parse_cell_key(k) for k in keys} == cells
    assert cell_key((3, 7)) == "3-7"


@pytest.mark.parametrize("key", ["", "3", "1-2-3", "a-b", "9-0", "0-9", "-1-2", "1,2"])
def test_parse_cell_key_rejects_bad_keys(key):
    with pytest.raises(ValueError):
        parse_cell_key(key)


# ---------- Cancellation ----------


def test_preset_cancel_event_stops_the_search():
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(SearchCancelled):
        count_solutions(empty_board(), [], limit=10**9, cancel_event=cancel)


def test_cancel_interrupts_a_running_search():
    cancel = threading.Event()
    outcome = []

    def run():
        try:
            outcome.append(count_solutions(empty_board(), [], limit=10**9, cancel_event=cancel))
        except SearchCancelled:
            outcome.append("cancelled")

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    time.sleep(0.2)
    cancel.set()
    thread.join(10)

    assert not thread.is_alive()
    assert outcome == ["cancelled"]


def test_unset_cancel_event_keeps_the_count(solution):
    cancel = threading.Event()
    assert count_solutions(empty_board(), singleton_cages(solution), cancel_event=cancel) == 1
