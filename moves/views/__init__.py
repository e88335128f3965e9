"""Views package for the moves app."""

from .study import study_move, due_moves

__all__ = [
    # Study
    'study_move',
    'due_moves',
]
