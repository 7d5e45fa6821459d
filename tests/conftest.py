import random

import pytest

from killer_solver import generate_solution


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def solution():
    return generate_solution(random.Random(2024))


def always(count):
    """Verifier stub: ignores the puzzle and reports `count` solutions."""
    calls = []

    def verifier(board, cages, limit=2, cancel_event=None):
        calls.append((board, cages, limit))
        return count

    verifier.calls = calls
    return verifier


@pytest.fixture
def non_unique_verifier():
    return always(2)


@pytest.fixture
def unique_verifier():
    return always(1)
