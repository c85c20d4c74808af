"""
Symmetric randomized starting positions.

The back rank {K, Q, R, R, B, B, N, N} is shuffled once and mirrored to both
sides, pawns fill ranks 2 and 7, and each side's bishops must stand on
opposite-coloured squares.
"""

import random
from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

import chess

from fairstart.constants import MAX_SHUFFLES
from fairstart.errors import InvariantViolation

FILES = "abcdefgh"
BACK_RANK_PIECES = ("k", "q", "r", "r", "b", "b", "n", "n")

# Expected material per side for a generated start
PIECE_COUNTS = {"k": 1, "q": 1, "r": 2, "b": 2, "n": 2, "p": 8}


@dataclass(frozen=True)
class Position:
    """Immutable board snapshot: square name -> (piece kind, colour), plus side to move.

    Piece kinds are lowercase python-chess symbols ("k", "q", "r", "b", "n", "p");
    colours are chess.WHITE / chess.BLACK.
    """
    pieces: Mapping[str, tuple[str, bool]]
    white_to_move: bool = True

    def __post_init__(self):
        placement = dict(self.pieces)
        for square, (kind, color) in placement.items():
            if square not in chess.SQUARE_NAMES:
                raise ValueError(f"Invalid square: {square!r}")
            if kind not in PIECE_COUNTS:
                raise ValueError(f"Invalid piece kind {kind!r} on {square}")
        for color in (chess.WHITE, chess.BLACK):
            kings = sum(1 for kind, c in placement.values() if kind == "k" and c == color)
            if kings != 1:
                side = "white" if color == chess.WHITE else "black"
                raise ValueError(f"Position must have exactly one {side} king, found {kings}")
        object.__setattr__(self, "pieces", MappingProxyType(placement))

    def piece_at(self, square: str) -> tuple[str, bool] | None:
        return self.pieces.get(square)

    def board(self) -> chess.Board:
        """Build a python-chess board with no castling rights or en passant square."""
        board = chess.Board(None)
        for square, (kind, color) in self.pieces.items():
            symbol = kind.upper() if color == chess.WHITE else kind
            board.set_piece_at(chess.parse_square(square), chess.Piece.from_symbol(symbol))
        board.turn = chess.WHITE if self.white_to_move else chess.BLACK
        return board

    def fen(self) -> str:
        return self.board().fen()

    @classmethod
    def from_fen(cls, fen: str) -> "Position":
        """Parse a FEN string. Raises ValueError for malformed FEN."""
        board = chess.Board(fen)
        pieces = {
            chess.square_name(square): (piece.symbol().lower(), piece.color)
            for square, piece in board.piece_map().items()
        }
        return cls(pieces, white_to_move=board.turn == chess.WHITE)

    def __str__(self):
        return self.fen()


def shuffle_back_rank(rng: random.Random) -> list[str]:
    """Fisher-Yates shuffle of the back-rank pieces."""
    pieces = list(BACK_RANK_PIECES)
    for i in range(len(pieces) - 1, 0, -1):
        j = rng.randint(0, i)
        pieces[i], pieces[j] = pieces[j], pieces[i]
    return pieces


def bishops_on_opposite_files(back_rank: list[str]) -> bool:
    """With both bishops on one rank, opposite colours means the file indices sum to an odd number."""
    files = [i for i, kind in enumerate(back_rank) if kind == "b"]
    return len(files) == 2 and (files[0] + files[1]) % 2 == 1


def square_is_light(square: str) -> bool:
    return bool(chess.BB_LIGHT_SQUARES & chess.BB_SQUARES[chess.parse_square(square)])


def bishops_on_opposite_colors(position: Position, color: bool) -> bool:
    squares = [sq for sq, (kind, c) in position.pieces.items() if kind == "b" and c == color]
    if len(squares) != 2:
        return False
    return square_is_light(squares[0]) != square_is_light(squares[1])


def arrange_symmetric(back_rank: list[str]) -> Position:
    """Place the back rank on ranks 1 and 8 (same file order) and pawns on ranks 2 and 7."""
    pieces = {}
    for file, kind in zip(FILES, back_rank):
        pieces[f"{file}1"] = (kind, chess.WHITE)
        pieces[f"{file}8"] = (kind, chess.BLACK)
        pieces[f"{file}2"] = ("p", chess.WHITE)
        pieces[f"{file}7"] = ("p", chess.BLACK)
    return Position(pieces, white_to_move=True)


def check_invariants(position: Position) -> None:
    """
    Verify a generated start: material per side, mirrored back ranks,
    full pawn ranks and opposite-coloured bishops.

    Raises InvariantViolation on the first failure found.
    """
    for color, name in ((chess.WHITE, "white"), (chess.BLACK, "black")):
        counts = Counter(kind for kind, c in position.pieces.values() if c == color)
        if dict(counts) != PIECE_COUNTS:
            raise InvariantViolation(f"Unexpected {name} material: {dict(counts)}")

    for file in FILES:
        white_piece = position.piece_at(f"{file}1")
        black_piece = position.piece_at(f"{file}8")
        if white_piece is None or black_piece is None:
            raise InvariantViolation(f"Empty back-rank square on file {file}")
        if white_piece[1] != chess.WHITE or black_piece[1] != chess.BLACK:
            raise InvariantViolation(f"Wrong side on back rank, file {file}")
        if white_piece[0] != black_piece[0] or white_piece[0] == "p":
            raise InvariantViolation(
                f"Back ranks not mirrored on file {file}: {white_piece[0]} vs {black_piece[0]}"
            )
        if position.piece_at(f"{file}2") != ("p", chess.WHITE):
            raise InvariantViolation(f"Missing white pawn on {file}2")
        if position.piece_at(f"{file}7") != ("p", chess.BLACK):
            raise InvariantViolation(f"Missing black pawn on {file}7")

    for color, name in ((chess.WHITE, "white"), (chess.BLACK, "black")):
        if not bishops_on_opposite_colors(position, color):
            raise InvariantViolation(f"The {name} bishops share a square colour")


def generate_symmetric_position(rng: random.Random | None = None) -> Position:
    """
    Generate a randomized, mirrored, legal starting position with white to move.

    Pass a seeded random.Random for reproducible output.
    """
    rng = rng if rng is not None else random.Random()
    for _ in range(MAX_SHUFFLES):
        back_rank = shuffle_back_rank(rng)
        if not bishops_on_opposite_files(back_rank):
            continue
        position = arrange_symmetric(back_rank)
        check_invariants(position)
        return position
    raise InvariantViolation(f"No valid back rank after {MAX_SHUFFLES} shuffles")


def generate_position_from_seed(seed: int) -> Position:
    return generate_symmetric_position(random.Random(seed))


def chess960_index(position: Position) -> int | None:
    """Scharnagl index (0-959) if the back rank is a Chess960 start (king between rooks)."""
    return position.board().chess960_pos(ignore_castling=True)
