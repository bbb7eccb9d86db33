"""Exception taxonomy for pick intake, scoring and backfill."""


class ThreeManError(Exception):
    """Base class for every error raised by the engine."""


class InputValidationError(ThreeManError):
    """Bad input shape or unknown ids. Rejected before anything is persisted."""


class UnknownPlayerError(InputValidationError):
    def __init__(self, player_id: str):
        super().__init__('unknown player')
        self.player_id = player_id


class UnknownGameError(InputValidationError):
    def __init__(self, game_id: str):
        super().__init__('unknown game')
        self.game_id = game_id


class RuleViolation(ThreeManError):
    """
    A pick that is well formed but breaks a league rule.

    The message is the skip reason shown to the participant.
    """


class SlotLockedError(RuleViolation):
    pass


class PlayerAlreadyUsedError(RuleViolation):
    def __init__(self, player_id: str, first_used_week: int):
        super().__init__(f'player already used in week {first_used_week}')
        self.player_id = player_id
        self.first_used_week = first_used_week


class IneligiblePlayerError(RuleViolation):
    def __init__(self, player_id: str, slot: str):
        super().__init__('player not eligible for this position')
        self.player_id = player_id
        self.slot = slot


class TransientProviderError(ThreeManError):
    """Stats provider call failed after all retries."""

    def __init__(self, description: str, attempts: int, last_error: str | None = None):
        message = f'{description} failed after {attempts} attempts'
        if last_error:
            message += f': {last_error}'
        super().__init__(message)
        self.description = description
        self.attempts = attempts
        self.last_error = last_error


class InvariantViolation(ThreeManError):
    """A write that would break a write-once fact. Indicates a race, not corruption."""


class UsageAlreadyRecordedError(InvariantViolation):
    pass
