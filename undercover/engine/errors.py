"""Exceptions raised by the round engine."""


class InvalidActionError(ValueError):
    """An action was invoked in a phase or with input that cannot apply."""


class InvalidSettingsError(ValueError):
    """Game settings break a limit or cannot start a game."""


class WordBankError(ValueError):
    """The word bank file is missing, empty or malformed."""
