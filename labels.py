"""Sequential point labels: A, B, ..., Z, A_{1}, B_{1}, ..."""

import string


class PointLabelSequence:
    """
    Label generator owned by an editor session.

    Each session keeps its own counter; reset() starts over at "A".
    """

    def __init__(self, start: int = 0):
        self.counter = start

    @staticmethod
    def label_for(index: int) -> str:
        letter = string.ascii_uppercase[index % 26]
        if index >= 26:
            return f"{letter}_{{{index // 26}}}"
        return letter

    def peek(self) -> str:
        """Label that next_label() will return, without consuming it."""
        return self.label_for(self.counter)

    def next_label(self) -> str:
        label = self.label_for(self.counter)
        self.counter += 1
        return label

    def reset(self) -> None:
        self.counter = 0
