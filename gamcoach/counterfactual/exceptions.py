# gamcoach/counterfactual/exceptions.py
"""Errors raised while setting up a counterfactual search."""


class MissingTargetRangeError(ValueError):
    """A regression model was asked for counterfactuals without a target range."""


class TargetAlreadyReachedError(ValueError):
    """The current score already lies inside the requested target range."""

    def __init__(self, score: float, target_range):
        self.score = score
        self.target_range = target_range
        super().__init__(
            f"The current score {score:.4f} is already inside the target range {list(target_range)}."
        )
