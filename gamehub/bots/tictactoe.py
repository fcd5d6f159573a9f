"""
Grid game bot.

easy: any empty cell. medium: win, block, centre, corner, anything.
hard: full minimax (the board is small enough to search completely).
"""

import random
from copy import deepcopy

from gamehub.bots.base import BaseBot, EASY, HARD, MEDIUM
from gamehub.tictactoe.engine import SIZE, SYMBOLS, empty_cells, find_winning_line

CENTRE = (1, 1)
CORNERS = ((0, 0), (0, 2), (2, 0), (2, 2))


def other_symbol(symbol):
    return SYMBOLS[1] if symbol == SYMBOLS[0] else SYMBOLS[0]


def winning_cell(board, symbol):
    """An empty cell that completes a line for symbol, or None."""
    for r, c in empty_cells(board):
        board[r][c] = symbol
        won = find_winning_line(board) is not None
        board[r][c] = None
        if won:
            return r, c
    return None


def minimax(board, to_move, me, depth=0):
    """Score of the position for `me`: win > draw > loss, sooner is better."""
    if find_winning_line(board):
        # The player who just moved completed the line
        return (10 - depth) if other_symbol(to_move) == me else (depth - 10)
    cells = empty_cells(board)
    if not cells:
        return 0

    scores = []
    for r, c in cells:
        board[r][c] = to_move
        scores.append(minimax(board, other_symbol(to_move), me, depth + 1))
        board[r][c] = None
    return max(scores) if to_move == me else min(scores)


def best_move(board, symbol):
    best, best_score = None, None
    for r, c in empty_cells(board):
        board[r][c] = symbol
        score = minimax(board, other_symbol(symbol), symbol, 1)
        board[r][c] = None
        if best_score is None or score > best_score:
            best, best_score = (r, c), score
    return best


class TicTacToeBot(BaseBot):

    turn_ending = frozenset({"place"})

    def __init__(self, engine, bot_id, difficulty=MEDIUM, rng=None):
        super().__init__(engine, bot_id, difficulty)
        self.rng = rng or random

    def make_decision(self):
        data = self.engine.state["data"]
        board = deepcopy(data["board"])
        me = self.engine.get_symbol(self.bot_id) or data["current_symbol"]
        cells = empty_cells(board)
        if not cells:
            raise ValueError("No empty cells left")

        if self.difficulty == EASY:
            row, col = self.rng.choice(cells)
        elif self.difficulty == HARD:
            row, col = best_move(board, me)
        else:
            row, col = self._medium_move(board, me, cells)
        return {"type": "place", "row": row, "col": col}

    def _medium_move(self, board, me, cells):
        for symbol in (me, other_symbol(me)):
            cell = winning_cell(board, symbol)
            if cell:
                return cell
        if CENTRE in cells:
            return CENTRE
        corners = [c for c in CORNERS if c in cells]
        if corners:
            return self.rng.choice(corners)
        return self.rng.choice(cells)

    def decision_to_move(self, decision):
        return self.move("place", {"row": decision["row"], "col": decision["col"]})

    def evaluate_state(self):
        data = self.engine.state["data"]
        rows = ["".join(cell or "." for cell in row) for row in data["board"]]
        return f"board={'/'.join(rows)} to_move={data['current_symbol']} size={SIZE}"
