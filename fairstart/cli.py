"""
Command-line interface for balanced start generation.
"""

import argparse
import asyncio
import random
import sys

from fairstart.analysis import Evaluation, format_evaluation
from fairstart.config import Settings
from fairstart.engine_manager import init_stockfish
from fairstart.errors import EngineTimeout, EngineUnavailable, SearchExhausted
from fairstart.evaluator import BalanceEvaluator
from fairstart.logging_config import setup_logging
from fairstart.positions import chess960_index, generate_symmetric_position
from fairstart.search import PositionSearch, SearchResult

EXIT_EXHAUSTED = 2
EXIT_ENGINE_UNAVAILABLE = 3
EXIT_ENGINE_TIMEOUT = 4


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate randomized, engine-balanced chess starting positions",
        epilog="Engine lookup: --engine, then STOCKFISH_PATH, then engines/stockfish, then PATH"
    )
    parser.add_argument("--attempts", "-a", type=int, default=None,
                        help="Maximum generate/evaluate attempts per search (default: 10)")
    parser.add_argument("--threshold", type=float, default=None,
                        help="Largest |evaluation| in pawns that counts as balanced (default: 0.3)")
    parser.add_argument("--depth", "-d", type=int, default=None,
                        help="Engine search depth in plies (default: 20)")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Seconds allowed per evaluation (default: no limit)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for reproducible positions")
    parser.add_argument("--count", "-n", type=int, default=1,
                        help="Number of positions to produce (default: 1)")
    parser.add_argument("--engine", type=str, default=None, metavar="PATH",
                        help="Path to a UCI engine binary")
    parser.add_argument("--evaluate", type=str, default=None, metavar="FEN",
                        help="Evaluate a single position and exit")
    parser.add_argument("--analyse", type=str, default=None, metavar="FEN",
                        help="Show the top engine lines for a position and exit")
    parser.add_argument("--multipv", type=int, default=None,
                        help="Number of lines for --analyse (default: 3)")
    parser.add_argument("--no-engine", action="store_true",
                        help="Print symmetric positions without engine evaluation")
    parser.add_argument("--init-stockfish", action="store_true",
                        help="Download Stockfish into the engines directory and exit")
    parser.add_argument("--serve", action="store_true",
                        help="Run the HTTP API")
    parser.add_argument("--port", type=int, default=5000,
                        help="Port for --serve (default: 5000)")
    parser.add_argument("--log-level", type=str, default=None,
                        help="Log level (TRACE shows UCI traffic; default: INFO)")
    parser.add_argument("--log-file", type=str, default=None,
                        help="Also write logs to this file")
    return parser


def settings_from_args(args) -> Settings:
    return Settings.from_env().with_overrides(
        balance_threshold=args.threshold,
        search_depth=args.depth,
        max_attempts=args.attempts,
        attempt_timeout=args.timeout,
        multipv=args.multipv,
        engine_path=args.engine,
        log_level=args.log_level,
    )


def print_evaluation(fen: str, evaluation: Evaluation) -> None:
    print(f"FEN:        {fen}")
    print(f"Evaluation: {format_evaluation(evaluation.value)} (depth {evaluation.depth})")
    if evaluation.best_move:
        print(f"Best move:  {evaluation.best_move}")
    if len(evaluation.lines) > 1:
        print()
        for line in evaluation.lines:
            continuation = " ".join(line.continuation)
            print(f"  {line.rank}. {line.move or '-':<6} {format_evaluation(line.value):>10}  {continuation}")


def print_result(result: SearchResult) -> None:
    position = result.position
    print(f"FEN:        {position.fen()}")
    print(f"Evaluation: {format_evaluation(result.evaluation.value)} (depth {result.evaluation.depth})")
    index = chess960_index(position)
    if index is not None:
        print(f"Chess960:   #{index}")
    print(f"Attempts:   {len(result.attempts)}")


async def run_search(settings: Settings, count: int, rng: random.Random | None) -> int:
    async with BalanceEvaluator(settings) as evaluator:
        search = PositionSearch(
            evaluator,
            rng=rng,
            max_attempts=settings.max_attempts,
            attempt_timeout=settings.attempt_timeout,
        )
        for i in range(count):
            if i:
                print()
            try:
                result = await search.find_balanced_position()
            except SearchExhausted as e:
                print(f"Error: {e}")
                failures = [a for a in e.attempts if a.error]
                if failures:
                    print(f"  ({len(failures)} attempts failed on engine errors)")
                return EXIT_EXHAUSTED
            print_result(result)
    return 0


async def run_evaluate(settings: Settings, fen: str, multipv: int | None) -> int:
    async with BalanceEvaluator(settings) as evaluator:
        if multipv:
            evaluation = await evaluator.analyse(fen, multipv=multipv)
        else:
            evaluation = await evaluator.evaluate(fen)
        print_evaluation(fen, evaluation)
        verdict = "balanced" if evaluator.classify(evaluation) else "not balanced"
        print(f"Verdict:    {verdict} (threshold {settings.balance_threshold})")
    return 0


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = settings_from_args(args)
        setup_logging(settings.log_level, args.log_file)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if args.init_stockfish:
        try:
            binary = init_stockfish()
        except EngineUnavailable as e:
            print(f"Error: {e}")
            sys.exit(EXIT_ENGINE_UNAVAILABLE)
        print(f"Stockfish ready: {binary}")
        sys.exit(0)

    if args.serve:
        from web.app import create_app
        from web.service import EvaluatorService
        service = EvaluatorService(settings)
        try:
            create_app(service).run(host="0.0.0.0", port=args.port)
        finally:
            service.close()
        sys.exit(0)

    rng = random.Random(args.seed) if args.seed is not None else None

    if args.no_engine:
        for i in range(args.count):
            print(generate_symmetric_position(rng).fen())
        sys.exit(0)

    try:
        if args.evaluate or args.analyse:
            fen = args.analyse or args.evaluate
            multipv = settings.multipv if args.analyse else None
            code = asyncio.run(run_evaluate(settings, fen, multipv))
        else:
            code = asyncio.run(run_search(settings, args.count, rng))
    except ValueError as e:
        print(f"Error: Invalid position: {e}")
        code = 1
    except EngineUnavailable as e:
        print(f"Error: Engine not available, try again later ({e})")
        code = EXIT_ENGINE_UNAVAILABLE
    except EngineTimeout as e:
        print(f"Error: {e}")
        code = EXIT_ENGINE_TIMEOUT
    sys.exit(code)


if __name__ == "__main__":
    main()
