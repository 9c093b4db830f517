"""Result screen lifecycle."""

from virtualroom.services.results.controller import (
    AUTO_SAVE_KINDS,
    ResultController,
    ResultState,
    ResultView,
)

__all__ = [
    "AUTO_SAVE_KINDS",
    "ResultController",
    "ResultState",
    "ResultView",
]
