# app.py
import html
import json
import queue
import time
from typing import Dict, List, Optional

import streamlit as st

from killer_generator import DIFFICULTIES, Puzzle
from killer_solver import SIZE, Cage, Cell
from killer_worker import GeneratorWorker
from puzzle_store import PuzzleStore, obtain_puzzle

st.set_page_config(page_title="Killer Sudoku - Générateur", layout="wide")

# au-delà, la requête est annulée (le worker reste libre pour les autres sessions)
GENERATION_TIMEOUT = 120.0


@st.cache_resource
def get_worker() -> GeneratorWorker:
    # un seul thread de génération pour toute l'application
    return GeneratorWorker()


@st.cache_resource
def get_store() -> PuzzleStore:
    return PuzzleStore()


def init_session():
    if "puzzle" not in st.session_state:
        st.session_state.puzzle = None
    if "puzzle_id" not in st.session_state:
        st.session_state.puzzle_id = None


def cages_to_cell_map(cages: List[Cage]) -> Dict[Cell, int]:
    """
    return map cell -> cage index (cases hors cage absentes)
    """
    ccm = {}
    for idx, cage in enumerate(cages):
        for cell in cage.cells:
            ccm[cell] = idx
    return ccm


def compute_cell_borders(cages: List[Cage]):
    """
    Pour chaque case en cage, les côtés où dessiner le pointillé de la cage
    (voisin hors de la cage ou hors grille).
    Retourne dict cell -> dict(top,right,bottom,left) boolean.
    """
    cage_map = cages_to_cell_map(cages)
    borders = {}
    for cell, cid in cage_map.items():
        r, c = cell
        borders[cell] = {
            "top": cage_map.get((r - 1, c)) != cid,
            "bottom": cage_map.get((r + 1, c)) != cid,
            "left": cage_map.get((r, c - 1)) != cid,
            "right": cage_map.get((r, c + 1)) != cid,
        }
    return borders


def render_svg_grid(puzzle: Puzzle, show_solution: bool = False, width_px: int = 540):
    """
    Retourne une string SVG : cages en pointillé (somme dans la première case),
    blocs 3x3 en trait épais, givens en gras, solution en bleu si demandée.
    """
    cell = width_px / SIZE
    inset = 4
    borders = compute_cell_borders(puzzle.cages)
    givens = set(puzzle.givens)

    svg_parts = []
    svg_parts.append(f'<svg width="{width_px}" height="{width_px}" viewBox="0 0 {width_px} {width_px}" xmlns="http://www.w3.org/2000/svg">')
    svg_parts.append('<rect width="100%" height="100%" fill="white" />')

    for r in range(SIZE):
        for c in range(SIZE):
            x = c * cell
            y = r * cell
            fill = "#e8e8e8" if (r, c) in givens else "#ffffff"
            svg_parts.append(f'<rect x="{x}" y="{y}" width="{cell}" height="{cell}" fill="{fill}" stroke="#d9d9d9" stroke-width="0.5"/>')

            b = borders.get((r, c))
            if b:
                x1, y1 = x + inset, y + inset
                x2, y2 = x + cell - inset, y + cell - inset
                dash = 'stroke="#555" stroke-width="1" stroke-dasharray="3,3"'
                if b["top"]:
                    svg_parts.append(f'<line x1="{x1}" y1="{y1}" x2="{x2}" y2="{y1}" {dash}/>')
                if b["bottom"]:
                    svg_parts.append(f'<line x1="{x1}" y1="{y2}" x2="{x2}" y2="{y2}" {dash}/>')
                if b["left"]:
                    svg_parts.append(f'<line x1="{x1}" y1="{y1}" x2="{x1}" y2="{y2}" {dash}/>')
                if b["right"]:
                    svg_parts.append(f'<line x1="{x2}" y1="{y1}" x2="{x2}" y2="{y2}" {dash}/>')

            val = puzzle.board[r][c]
            color = "black"
            if not val and show_solution:
                val = puzzle.solution[r][c]
                color = "#1f5fbf"
            if val:
                weight = "bold" if (r, c) in givens else "normal"
                font_size = int(cell * 0.5)
                svg_parts.append(f'<text x="{x + cell / 2}" y="{y + cell / 2}" font-family="Arial, sans-serif" font-size="{font_size}px" font-weight="{weight}" text-anchor="middle" dominant-baseline="central" fill="{color}">{html.escape(str(val))}</text>')

    # somme dans la première case de chaque cage
    for cage in puzzle.cages:
        r, c = cage.cells[0]
        svg_parts.append(f'<text x="{c * cell + inset + 1}" y="{r * cell + inset + 9}" font-family="Arial, sans-serif" font-size="10px" fill="#333">{cage.sum}</text>')

    # blocs 3x3
    for i in range(0, SIZE + 1, 3):
        p = i * cell
        svg_parts.append(f'<line x1="{p}" y1="0" x2="{p}" y2="{width_px}" stroke="black" stroke-width="3"/>')
        svg_parts.append(f'<line x1="0" y1="{p}" x2="{width_px}" y2="{p}" stroke="black" stroke-width="3"/>')

    svg_parts.append('</svg>')
    return "\n".join(svg_parts)


def load_puzzle_from_json(s: str) -> Puzzle:
    obj = json.loads(s)
    # accepte le payload seul ou le message "success" complet
    return Puzzle.from_dict(obj.get("puzzle", obj))


def dump_puzzle_to_json(puzzle: Puzzle) -> str:
    return json.dumps(puzzle.to_dict())


def request_puzzle(difficulty: str, seed: Optional[int]) -> Optional[Puzzle]:
    job = get_worker().request(difficulty, seed=seed)
    deadline = time.monotonic() + GENERATION_TIMEOUT
    with st.status("Génération en cours...", expanded=True) as box:
        while True:
            try:
                msg = job.messages.get(timeout=max(0.5, deadline - time.monotonic()))
            except queue.Empty:
                if not job.cancelled:
                    job.cancel()
                    box.write(f"Délai de {GENERATION_TIMEOUT:.0f} s dépassé : annulation...")
                continue
            if msg["type"] == "status":
                box.write(msg["message"])
            elif msg["type"] == "success":
                box.update(label="Grille générée avec succès !", state="complete", expanded=False)
                return Puzzle.from_dict(msg["puzzle"])
            else:
                box.update(label="Échec de la génération", state="error")
                st.error(msg["message"])
                return None


def generate_payload(difficulty: str) -> Optional[dict]:
    puzzle = request_puzzle(difficulty, None)
    return puzzle.to_dict() if puzzle is not None else None


# --- UI ---
st.title("Killer Sudoku : générateur")
st.write("Génère des grilles à solution unique (cages + sommes), par niveau de difficulté.")

init_session()

with st.sidebar:
    st.header("Paramètres")
    difficulty = st.selectbox("Difficulté", DIFFICULTIES, index=1)
    seed = st.text_input("Seed (optionnel) -- laisse vide pour aléatoire", value="")
    gen_btn = st.button("Générer une nouvelle grille")
    bank_btn = st.button("Grille de la banque")
    st.caption(f"{get_store().count(difficulty)} grille(s) {difficulty} en banque")
    st.write("---")
    show_solution = st.checkbox("Afficher la solution", value=False)
    save_btn = st.button("Enregistrer dans la banque")
    uploaded = st.file_uploader("Importer puzzle JSON", type=["json"])
    st.write("Astuce: la génération peut faire jusqu'à 50 tentatives avant de trouver une grille unique.")

# import
if uploaded is not None:
    try:
        st.session_state.puzzle = load_puzzle_from_json(uploaded.read().decode())
        st.session_state.puzzle_id = None
    except (ValueError, KeyError, TypeError) as exc:
        st.error(f"Fichier invalide : {exc}")

# generate
if gen_btn:
    s = int(seed) if seed.strip().isdigit() else None
    puzzle = request_puzzle(difficulty, s)
    if puzzle is not None:
        st.session_state.puzzle = puzzle
        st.session_state.puzzle_id = None

if bank_btn:
    # banque vide pour ce niveau : nouvelle grille générée puis enregistrée
    puzzle_id, data = obtain_puzzle(get_store(), difficulty, st.session_state.puzzle_id,
                                    generate=generate_payload)
    if data is not None:
        st.session_state.puzzle = Puzzle.from_dict(data)
        st.session_state.puzzle_id = puzzle_id

if st.session_state.get("puzzle") is None:
    st.info("Génère une grille pour commencer (bouton à gauche).")
else:
    puzzle = st.session_state.puzzle
    st.markdown(render_svg_grid(puzzle, show_solution=show_solution), unsafe_allow_html=True)
    caged = sum(len(c) for c in puzzle.cages)
    st.caption(f"{puzzle.difficulty} · {len(puzzle.cages)} cages, {SIZE * SIZE - caged} case(s) hors cage, {len(puzzle.givens)} given(s)")

    if save_btn:
        puzzle_id = get_store().save_puzzle(puzzle.difficulty, puzzle.to_dict())
        if puzzle_id is None:
            st.error("Impossible d'enregistrer la grille.")
        else:
            st.session_state.puzzle_id = puzzle_id
            st.success(f"Grille enregistrée (id {puzzle_id}).")

    st.download_button("Télécharger JSON", dump_puzzle_to_json(puzzle),
                       file_name="killer_sudoku.json", mime="application/json")
