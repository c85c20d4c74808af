"""
Game records and the collectible hand-off.

A finished game is frozen into a GameRecord (start FEN plus moves) and handed
to a minting collaborator as a metadata payload. Minting itself happens
elsewhere.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

import chess
import chess.pgn

COLLECTIBLE_NAME = "Freestyle Chess Game NFT"
COLLECTIBLE_DESCRIPTION = "A record of a freestyle chess game"


@dataclass(frozen=True)
class TimeControl:
    name: str
    initial: int  # seconds
    increment: int  # seconds per move

    def __str__(self):
        return f"{self.initial}+{self.increment}"


TIME_CONTROLS = {
    "bullet": TimeControl("Bullet", 60, 0),
    "blitz": TimeControl("Blitz", 180, 2),
    "rapid": TimeControl("Rapid", 600, 5),
    "classical": TimeControl("Classical", 1800, 10),
}


class Minter(Protocol):
    """Collaborator that turns a game payload into a collectible, returning its token id."""

    def mint(self, payload: dict) -> str:
        ...


@dataclass(frozen=True)
class GameRecord:
    """Immutable log of one game from a generated start."""
    start_fen: str
    moves: tuple[str, ...] = ()  # UCI notation
    white_name: str = "White"
    black_name: str = "Black"
    result: str = "*"  # "1-0", "0-1", "1/2-1/2", "*"
    time_control: TimeControl | None = None
    start_evaluation: float | None = None
    final_evaluation: float | None = None
    played_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_moves(cls, start_fen: str, moves: list[str], **kwargs) -> "GameRecord":
        """
        Build a record, checking every move is legal from the start position.

        The result is taken from the final board when the game is over and no
        explicit result is given. Raises ValueError on an illegal move.
        """
        board = chess.Board(start_fen)
        for move in moves:
            board.push_uci(move)
        if "result" not in kwargs and board.is_game_over():
            kwargs["result"] = board.result()
        return cls(start_fen=start_fen, moves=tuple(moves), **kwargs)

    def board(self) -> chess.Board:
        """Board after the last move."""
        board = chess.Board(self.start_fen)
        for move in self.moves:
            board.push_uci(move)
        return board

    def positions(self) -> list[str]:
        """FEN of the start and after every move."""
        board = chess.Board(self.start_fen)
        fens = [board.fen()]
        for move in self.moves:
            board.push_uci(move)
            fens.append(board.fen())
        return fens

    def winner_and_loser(self) -> tuple[str | None, str | None]:
        if self.result == "1-0":
            return self.white_name, self.black_name
        if self.result == "0-1":
            return self.black_name, self.white_name
        return None, None

    def to_pgn(self) -> str:
        board = chess.Board(self.start_fen)
        game = chess.pgn.Game()
        game.headers["Event"] = "Freestyle Game"
        game.headers["Date"] = self.played_at.strftime("%Y.%m.%d")
        game.headers["White"] = self.white_name
        game.headers["Black"] = self.black_name
        if self.time_control:
            game.headers["TimeControl"] = str(self.time_control)
        game.setup(board)

        node = game
        for move in self.moves:
            node = node.add_variation(chess.Move.from_uci(move))

        game.headers["Result"] = self.result
        return str(game)

    def mint_payload(self) -> dict:
        """Metadata handed to the minting collaborator."""
        winner, loser = self.winner_and_loser()
        evaluation = self.start_evaluation if self.start_evaluation is not None else 0.0
        game_data = json.dumps({
            "moves": self.positions(),
            "startEvaluation": self.start_evaluation,
            "finalEvaluation": self.final_evaluation,
            "result": self.result,
        })
        return {
            "name": COLLECTIBLE_NAME,
            "description": COLLECTIBLE_DESCRIPTION,
            "attributes": {
                "winner": winner,
                "loser": loser,
                "evaluation": evaluation,
                "timestamp": self.played_at.isoformat(),
            },
            "gameData": game_data,
            "pgn": self.to_pgn(),
            # Ledger side stores the evaluation as an integer in hundredths of a pawn
            "evaluationHundredths": round(evaluation * 100),
        }


def hand_off(record: GameRecord, minter: Minter) -> str:
    """Give a finished game to the minter. Games without any move are rejected."""
    if not record.moves:
        raise ValueError("Cannot mint a game with no moves")
    return minter.mint(record.mint_payload())
