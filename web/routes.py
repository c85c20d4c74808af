"""
Flask routes for position generation and evaluation.
"""

import random

from flask import jsonify, request

from fairstart.analysis import Evaluation, format_evaluation
from fairstart.errors import EngineTimeout, EngineUnavailable, SearchExhausted
from fairstart.positions import Position, chess960_index, generate_symmetric_position
from fairstart.search import SearchAttempt


def evaluation_to_dict(evaluation: Evaluation) -> dict:
    return {
        'value': evaluation.value,
        'display': format_evaluation(evaluation.value),
        'bestMove': evaluation.best_move,
        'depth': evaluation.depth,
        'lines': [
            {
                'rank': line.rank,
                'move': line.move,
                'value': line.value,
                'display': format_evaluation(line.value),
                'continuation': ' '.join(line.continuation),
            }
            for line in evaluation.lines
        ],
    }


def attempt_to_dict(attempt: SearchAttempt) -> dict:
    return {
        'index': attempt.index,
        'fen': attempt.fen,
        'outcome': attempt.outcome.value,
        'evaluation': attempt.evaluation.value if attempt.evaluation else None,
        'error': attempt.error,
    }


def position_to_dict(position: Position) -> dict:
    return {
        'fen': position.fen(),
        'chess960': chess960_index(position),
    }


def register_routes(app, service):
    """Register all routes with the Flask app."""

    @app.errorhandler(SearchExhausted)
    def search_exhausted(e):
        return jsonify({
            'error': 'search_exhausted',
            'message': str(e),
            'attempts': [attempt_to_dict(a) for a in e.attempts],
        }), 422

    @app.errorhandler(EngineUnavailable)
    def engine_unavailable(e):
        return jsonify({'error': 'engine_unavailable', 'message': str(e)}), 503

    @app.errorhandler(EngineTimeout)
    def engine_timeout(e):
        return jsonify({'error': 'engine_timeout', 'message': str(e)}), 504

    @app.route('/health')
    def health():
        """Health check endpoint."""
        return {'status': 'ok', 'engine': service.engine_running}

    @app.route('/api/positions/random', methods=['POST'])
    def random_position():
        """Symmetric start without engine evaluation. Optional JSON: {"seed": N}."""
        data = request.get_json(silent=True) or {}
        seed = data.get('seed')
        if seed is not None and not isinstance(seed, int):
            return jsonify({'error': 'invalid value for seed'}), 400
        rng = random.Random(seed) if seed is not None else None
        return jsonify(position_to_dict(generate_symmetric_position(rng)))

    @app.route('/api/positions/balanced', methods=['POST'])
    def balanced_position():
        """
        Find a balanced starting position.

        Optional JSON body: {"maxAttempts": N}
        """
        data = request.get_json(silent=True) or {}
        max_attempts = data.get('maxAttempts')
        if max_attempts is not None and (not isinstance(max_attempts, int) or max_attempts < 1):
            return jsonify({'error': 'invalid value for maxAttempts'}), 400

        result = service.find_balanced_position(max_attempts)
        body = position_to_dict(result.position)
        body['evaluation'] = evaluation_to_dict(result.evaluation)
        body['attempts'] = [attempt_to_dict(a) for a in result.attempts]
        return jsonify(body)

    @app.route('/api/evaluate', methods=['POST'])
    def evaluate():
        """
        Evaluate a position.

        Expects JSON body: {"fen": "...", "multipv": optional-integer}
        """
        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'missing JSON body'}), 400
        fen = data.get('fen')
        if not isinstance(fen, str) or not fen.strip():
            return jsonify({'error': 'missing field: fen'}), 400
        multipv = data.get('multipv')
        if multipv is not None and (not isinstance(multipv, int) or multipv < 1):
            return jsonify({'error': 'invalid value for multipv'}), 400

        try:
            evaluation = service.evaluate(fen, multipv)
        except ValueError as e:
            return jsonify({'error': f'invalid fen: {e}'}), 400

        body = evaluation_to_dict(evaluation)
        body['fen'] = fen
        return jsonify(body)
