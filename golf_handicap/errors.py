class HandicapError(Exception):
    """Base error for the handicap engine."""


class ConfigurationError(HandicapError):
    """Missing or invalid tee/course data (zero slope, missing par, no course).

    Carries the player and round date when known so the caller can tell which
    record needs fixing.
    """

    def __init__(self, message: str, player=None, round_date=None):
        self.player = player
        self.round_date = round_date
        context = []
        if player is not None:
            context.append(f"player={player}")
        if round_date is not None:
            context.append(f"date={round_date}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class NotFoundError(HandicapError):
    """Referenced player / round / tee box is not in the store."""

    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} not found")
