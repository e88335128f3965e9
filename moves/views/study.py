"""Study API views."""

import json

from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST

from ..models import Move, StudyHistory
from ..services import record_attempt


def _not_logged_in():
    return JsonResponse({'success': False, 'message': 'not logged in'})


def _parse_seed(value):
    """Read the optional line_study_id seed; None lets the service pick one."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"line_study_id must be a number, got {value!r}")
    return float(value)


def _parse_move_id(value):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"move_id must be an integer, got {value!r}")
    return value


def _parse_guess(value):
    """SAN of the move actually played, if any."""
    if value is None:
        return None
    max_length = StudyHistory._meta.get_field('incorrect_guess_san').max_length
    if not isinstance(value, str) or len(value) > max_length:
        raise ValueError(f"guess must be a SAN string, got {value!r}")
    return value


@require_POST
def study_move(request):
    """Submit one attempt at a move and return the next interval."""
    if not request.user.is_authenticated:
        return _not_logged_in()

    try:
        data = json.loads(request.body)
        move_id = _parse_move_id(data['move_id'])
        correct = data['correct']
        guess = _parse_guess(data.get('guess'))
        seed = _parse_seed(data.get('line_study_id'))
    except (json.JSONDecodeError, KeyError, ValueError, TypeError, AttributeError):
        return JsonResponse({'error': 'Invalid request'}, status=400)

    if not isinstance(correct, bool):
        return JsonResponse({'error': 'correct must be true or false'}, status=400)

    outcome = record_attempt(request.user, move_id, correct, guess=guess, seed=seed)

    if not outcome.success:
        return JsonResponse({
            'success': False,
            'error': outcome.message,
            'code': outcome.error.value,
        })

    return JsonResponse({
        'success': True,
        'interval': outcome.report.as_dict(),
    })


@require_GET
def due_moves(request):
    """List the learner's moves that should be studied now."""
    if not request.user.is_authenticated:
        return _not_logged_in()

    now = timezone.now()
    moves = Move.objects.filter(owner=request.user).due(now)

    return JsonResponse({
        'success': True,
        'moves': [
            {'id': move.pk, 'move_san': move.move_san, 'phase': move.phase}
            for move in moves
        ],
    })
