from pydantic import BaseModel, ConfigDict

CORRELATION_HEADER = "X-Correlation"

# header key -> field name, in wire order
_FIELDS = (
    ("VU", "vuser_id"),
    ("Session", "session_id"),
    ("Step", "step"),
    ("Script", "script"),
    ("Test", "test"),
)


class TraceContext(BaseModel):
    """Correlation metadata for one virtual user's current request.

    Frozen: a context for the next step is a copy, so virtual users running
    side by side never see each other's step names.
    """
    model_config = ConfigDict(frozen=True)

    vuser_id: int
    session_id: str
    step: str
    script: str
    test: str

    def for_step(self, step: str) -> "TraceContext":
        return self.model_copy(update={"step": step})

    def header(self) -> str:
        return "; ".join(f"{key}={getattr(self, attr)}" for key, attr in _FIELDS)

    @classmethod
    def parse(cls, value: str) -> "TraceContext":
        parts = {}
        for chunk in value.split(";"):
            key, sep, val = chunk.strip().partition("=")
            if not sep:
                raise ValueError(f"malformed correlation segment: {chunk!r}")
            parts[key] = val
        missing = [key for key, _ in _FIELDS if key not in parts]
        if missing:
            raise ValueError(f"correlation header missing {', '.join(missing)}")
        return cls(**{attr: parts[key] for key, attr in _FIELDS})
