"""
Grid-placement game: engine implementation.

Two players mark a 3x3 board in turn, X first. Three in a line wins;
a full board with no line is a draw (finished, no winner).
"""

from gamehub.game_engine import GameEngine, GameConfig, FINISHED, PLAYING

SIZE = 3
SYMBOLS = ("X", "O")
DRAW = "draw"

# Rows, columns, then the two diagonals
LINES = (
    [[[r, c] for c in range(SIZE)] for r in range(SIZE)]
    + [[[r, c] for r in range(SIZE)] for c in range(SIZE)]
    + [[[i, i] for i in range(SIZE)], [[i, SIZE - 1 - i] for i in range(SIZE)]]
)


def empty_board():
    return [[None] * SIZE for _ in range(SIZE)]


def find_winning_line(board):
    """Return the first completed line as [[row, col], ...], or None."""
    for line in LINES:
        marks = {board[r][c] for r, c in line}
        if len(marks) == 1 and None not in marks:
            return [list(cell) for cell in line]
    return None


def empty_cells(board):
    return [(r, c) for r in range(SIZE) for c in range(SIZE) if board[r][c] is None]


class TicTacToeEngine(GameEngine):

    game_type = "tic_tac_toe"
    default_config = GameConfig(min_players=2, max_players=2)

    # ── Setup ─────────────────────────────────────────────────────────

    def get_initial_game_data(self):
        return {
            "board": empty_board(),
            "current_symbol": SYMBOLS[0],
            # Symbol, DRAW, or None while in progress
            "winner": None,
            "winning_line": None,
            "move_count": 0,
        }

    # ── Moves ─────────────────────────────────────────────────────────

    def validate_move(self, move):
        if not super().validate_move(move):
            return False
        if move["type"] != "place":
            return False

        data = self.state["data"]
        if data["winner"] is not None:
            return False
        if self.get_player_index(move["player_id"]) != self.state["current_player_index"]:
            return False

        row = move.get("data", {}).get("row")
        col = move.get("data", {}).get("col")
        for value in (row, col):
            if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value < SIZE:
                return False
        return data["board"][row][col] is None

    def process_move(self, move):
        data = self.state["data"]
        row, col = move["data"]["row"], move["data"]["col"]
        # Marks follow the mover's seat, whoever the cursor skipped
        seat = self.get_player_index(move["player_id"])
        symbol = SYMBOLS[seat]

        data["board"][row][col] = symbol
        data["move_count"] += 1

        line = find_winning_line(data["board"])
        if line:
            data["winner"] = symbol
            data["winning_line"] = line
            self.state["status"] = FINISHED
            return

        if data["move_count"] == SIZE * SIZE:
            data["winner"] = DRAW
            data["winning_line"] = None
            self.state["status"] = FINISHED
            return

        data["current_symbol"] = SYMBOLS[(seat + 1) % len(SYMBOLS)]

    def restore_state(self, snapshot):
        super().restore_state(snapshot)
        # The cursor may have moved outside make_move (disconnect skips)
        data = self.state["data"]
        if self.state["status"] == PLAYING and data["winner"] is None:
            data["current_symbol"] = SYMBOLS[self.state["current_player_index"] % len(SYMBOLS)]

    def should_advance_turn(self, move):
        return self.state["status"] == PLAYING

    def check_win_condition(self):
        winner = self.state["data"]["winner"]
        if winner not in SYMBOLS:
            return None
        index = SYMBOLS.index(winner)
        players = self.state["players"]
        return players[index] if index < len(players) else None

    def get_game_rules(self):
        return [
            "Two players take turns (X and O)",
            "Mark any empty cell on the 3x3 grid",
            "First to get 3 in a row wins (horizontal, vertical, or diagonal)",
            "If all 9 cells are filled with no winner, the game is a draw",
        ]

    def get_symbol(self, player_id):
        index = self.get_player_index(player_id)
        if index is None or index >= len(SYMBOLS):
            return None
        return SYMBOLS[index]
