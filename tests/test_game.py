"""Tests for fairstart.game module."""

import io
import json
import random
from datetime import datetime, timezone
from unittest.mock import MagicMock

import chess.pgn
import pytest
from fairstart.game import (
    COLLECTIBLE_NAME,
    TIME_CONTROLS,
    GameRecord,
    TimeControl,
    hand_off,
)
from fairstart.positions import generate_symmetric_position

STANDARD_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w - - 0 1"
FOOLS_MATE = ["f2f3", "e7e5", "g2g4", "d8h4"]
PLAYED_AT = datetime(2024, 5, 17, 12, 30, tzinfo=timezone.utc)


class TestTimeControl:
    """Tests for time control presets."""

    def test_presets(self):
        assert str(TIME_CONTROLS["bullet"]) == "60+0"
        assert str(TIME_CONTROLS["blitz"]) == "180+2"
        assert str(TIME_CONTROLS["rapid"]) == "600+5"
        assert str(TIME_CONTROLS["classical"]) == "1800+10"

    def test_custom(self):
        assert str(TimeControl("Custom", 300, 3)) == "300+3"


class TestGameRecord:
    """Tests for GameRecord class."""

    def test_from_moves_detects_checkmate(self):
        record = GameRecord.from_moves(STANDARD_FEN, FOOLS_MATE)
        assert record.result == "0-1"
        assert record.board().is_checkmate()

    def test_unfinished_game_keeps_star(self):
        record = GameRecord.from_moves(STANDARD_FEN, ["e2e4", "e7e5"])
        assert record.result == "*"

    def test_explicit_result_wins(self):
        """A resignation is recorded even though the board is not over."""
        record = GameRecord.from_moves(STANDARD_FEN, ["e2e4"], result="1-0")
        assert record.result == "1-0"

    def test_illegal_move_rejected(self):
        with pytest.raises(ValueError):
            GameRecord.from_moves(STANDARD_FEN, ["e2e5"])

    def test_positions_include_start(self):
        record = GameRecord.from_moves(STANDARD_FEN, ["e2e4", "e7e5"])
        fens = record.positions()
        assert len(fens) == 3
        assert fens[0] == STANDARD_FEN

    def test_winner_and_loser(self):
        record = GameRecord.from_moves(STANDARD_FEN, FOOLS_MATE, white_name="alice", black_name="bob")
        assert record.winner_and_loser() == ("bob", "alice")
        assert GameRecord(STANDARD_FEN, result="1/2-1/2").winner_and_loser() == (None, None)


class TestToPgn:
    """Tests for PGN export."""

    def test_headers(self):
        record = GameRecord.from_moves(
            STANDARD_FEN, FOOLS_MATE,
            white_name="alice", black_name="bob",
            time_control=TIME_CONTROLS["blitz"], played_at=PLAYED_AT,
        )
        pgn = record.to_pgn()
        assert '[Event "Freestyle Game"]' in pgn
        assert '[Date "2024.05.17"]' in pgn
        assert '[White "alice"]' in pgn
        assert '[Black "bob"]' in pgn
        assert '[TimeControl "180+2"]' in pgn
        assert '[Result "0-1"]' in pgn
        assert "Qh4#" in pgn

    def test_generated_start_round_trips(self):
        """A non-standard start is carried in SetUp/FEN headers."""
        position = generate_symmetric_position(random.Random(11))
        board = position.board()
        moves = [next(iter(board.legal_moves)).uci()]
        record = GameRecord.from_moves(position.fen(), moves)

        game = chess.pgn.read_game(io.StringIO(record.to_pgn()))

        assert game.headers["SetUp"] == "1"
        assert game.headers["FEN"] == position.fen()
        assert [m.uci() for m in game.mainline_moves()] == moves


class TestMintPayload:
    """Tests for the collectible hand-off."""

    def test_payload_fields(self):
        record = GameRecord.from_moves(
            STANDARD_FEN, FOOLS_MATE,
            white_name="alice", black_name="bob",
            start_evaluation=0.12, final_evaluation=-103.0, played_at=PLAYED_AT,
        )
        payload = record.mint_payload()

        assert payload["name"] == COLLECTIBLE_NAME
        assert payload["attributes"]["winner"] == "bob"
        assert payload["attributes"]["loser"] == "alice"
        assert payload["attributes"]["evaluation"] == 0.12
        assert payload["attributes"]["timestamp"] == PLAYED_AT.isoformat()
        assert payload["evaluationHundredths"] == 12

        game_data = json.loads(payload["gameData"])
        assert len(game_data["moves"]) == len(FOOLS_MATE) + 1
        assert game_data["result"] == "0-1"
        assert payload["pgn"] == record.to_pgn()

    def test_missing_evaluation_defaults_to_zero(self):
        payload = GameRecord.from_moves(STANDARD_FEN, ["e2e4"]).mint_payload()
        assert payload["attributes"]["evaluation"] == 0.0
        assert payload["evaluationHundredths"] == 0

    def test_hand_off_calls_minter(self):
        minter = MagicMock()
        minter.mint.return_value = "token-42"
        record = GameRecord.from_moves(STANDARD_FEN, FOOLS_MATE)

        assert hand_off(record, minter) == "token-42"
        minter.mint.assert_called_once()
        assert minter.mint.call_args.args[0]["gameData"] == record.mint_payload()["gameData"]

    def test_hand_off_rejects_empty_game(self):
        minter = MagicMock()
        with pytest.raises(ValueError):
            hand_off(GameRecord(STANDARD_FEN), minter)
        minter.mint.assert_not_called()
