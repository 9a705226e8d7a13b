from __future__ import annotations


class PlayerInputError(ValueError):
    """Raised when a caller asks the engine to apply a choice that does not exist."""


class UnknownDecisionError(PlayerInputError):
    def __init__(self, decision_id: str):
        super().__init__(f"Unknown decision: {decision_id}")
        self.decision_id = decision_id


class UnknownOptionError(PlayerInputError):
    def __init__(self, decision_id: str, option_id: str):
        super().__init__(f"Unknown option: {option_id} for decision {decision_id}")
        self.decision_id = decision_id
        self.option_id = option_id
