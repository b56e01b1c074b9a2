class JourneyError(Exception):
    pass


class JourneyConfigError(JourneyError):
    """Invalid journey configuration, journey document or load profile."""


class StepFailed(JourneyError):
    def __init__(self, result):
        self.result = result
        super().__init__(f"{result.transaction} failed ({result.failure}): {result.error}")
