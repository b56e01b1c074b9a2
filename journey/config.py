import json, os, re, string
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import JourneyConfigError
from .trace import TraceContext

def env_float(name: str, default: Optional[float] = None) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise JourneyConfigError(f"{name} must be a number, got {raw!r}") from None


BASE_URL = os.getenv("JOURNEY_BASE_URL", "http://localhost:8080")
ERROR_RATE = env_float("JOURNEY_ERROR_RATE", 0.05)
TIMEOUT = env_float("JOURNEY_TIMEOUT")   # seconds; None keeps the httpx default
CONFIG_PATH = os.getenv("JOURNEY_CONFIG")

# these end up inside the X-Correlation value
_HEADER_RESERVED = re.compile(r"[;=]")


def _header_safe(v: str) -> str:
    if _HEADER_RESERVED.search(v):
        raise ValueError(f"{v!r} must not contain ';' or '='")
    return v


class Substep(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="substepName")
    duration: float = 0


class StepDefinition(BaseModel):
    name: str
    method: str = "POST"
    path: str = "/api/process"
    body: Union[Dict[str, Any], str, None] = None   # str bodies are $-templates
    wait: Optional[float] = None                    # seconds after the request
    substeps: List[Substep] = []

    @field_validator("name")
    @classmethod
    def _name_header_safe(cls, v: str) -> str:
        return _header_safe(v)

    @field_validator("method")
    @classmethod
    def _upper_method(cls, v: str) -> str:
        return v.upper()

    @field_validator("path")
    @classmethod
    def _relative_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"path must start with '/', got {v!r}")
        return v

    @model_validator(mode="after")
    def _default_wait(self):
        if self.wait is None:
            self.wait = sum(s.duration for s in self.substeps)
        if self.wait < 0:
            raise ValueError(f"wait must be >= 0, got {self.wait}")
        return self

    @property
    def transaction(self) -> str:
        return f"Step_{self.name}"

    def render_body(self, company: str, trace: TraceContext) -> bytes:
        if self.body is None:
            payload = {
                "companyName": company,
                "stepName": self.name,
                "substeps": [s.model_dump(by_alias=True) for s in self.substeps],
            }
            return json.dumps(payload).encode()
        if isinstance(self.body, str):
            text = string.Template(self.body).safe_substitute(
                company=company, step=self.name, vuser=trace.vuser_id,
                session=trace.session_id, script=trace.script, test=trace.test,
            )
            return text.encode()
        return json.dumps(self.body).encode()


class JourneyConfig(BaseModel):
    company: str
    base_url: str = BASE_URL
    steps: List[StepDefinition]
    test_name: str
    script_name: str
    domain: str = "retail"

    @field_validator("base_url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("test_name", "script_name")
    @classmethod
    def _names_header_safe(cls, v: str) -> str:
        return _header_safe(v)

    @model_validator(mode="after")
    def _unique_transactions(self):
        seen = set()
        for step in self.steps:
            if step.name in seen:
                raise ValueError(f"duplicate step name {step.name!r}")
            seen.add(step.name)
        return self

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    @classmethod
    def from_journey(cls, doc: Dict[str, Any], base_url: Optional[str] = None,
                     today: Optional[datetime] = None) -> "JourneyConfig":
        """Build a config from a journey document.

        The document carries ``companyName``, ``domain`` and a list of
        ``steps`` (each with ``stepName`` and optional ``substeps``). Script
        and test names are derived from company, domain and date unless the
        document names them.
        """
        company, domain = doc.get("companyName"), doc.get("domain")
        if not company or not domain:
            raise JourneyConfigError("journey document needs companyName and domain")
        steps = doc.get("steps", [])
        if not isinstance(steps, list):
            raise JourneyConfigError(f"steps must be a list, got {type(steps).__name__}")
        if not steps:
            raise JourneyConfigError("journey document has no steps")

        compact = re.sub(r"\s+", "", company)
        day = (today or datetime.now(timezone.utc)).strftime("%Y%m%d")
        definitions = []
        for raw in steps:
            if not isinstance(raw, dict):
                raise JourneyConfigError(f"each step must be an object, got {type(raw).__name__}")
            step = {
                "name": raw.get("stepName") or raw.get("name"),
                "substeps": raw.get("substeps", []),
            }
            for key in ("method", "path", "body", "wait"):
                if key in raw:
                    step[key] = raw[key]
            definitions.append(step)
        try:
            return cls(
                company=company,
                domain=domain,
                base_url=base_url or doc.get("baseUrl") or BASE_URL,
                steps=definitions,
                script_name=doc.get("scriptName") or f"BizObs_{compact}_{domain}_Journey",
                test_name=doc.get("testName") or f"{compact}_LoadTest_{day}",
            )
        except ValidationError as e:
            raise JourneyConfigError(str(e)) from e


def _step(name: str, *substeps) -> StepDefinition:
    return StepDefinition(name=name, substeps=[Substep(name=n, duration=d) for n, d in substeps])


def default_journey(base_url: Optional[str] = None) -> JourneyConfig:
    """The six-step retail journey for the Next storefront."""
    return JourneyConfig(
        company="Next",
        base_url=base_url or BASE_URL,
        script_name="BizObs_Next_Retail_Journey",
        test_name="Next_Performance_Test_20251127",
        steps=[
            _step("ProductDiscovery", ("Browse Categories", 5), ("Search Products", 8)),
            _step("CartManagement", ("Add to Cart", 3), ("Update Quantities", 5)),
            _step("CheckoutProcess", ("Payment Details", 12), ("Delivery Options", 7)),
            _step("OrderConfirmation", ("Process Payment", 8), ("Generate Receipt", 4)),
            _step("FulfillmentProcessing", ("Inventory Check", 6), ("Prepare Order", 15)),
            _step("DeliveryTracking", ("Generate Tracking", 3), ("Send Notifications", 5)),
        ],
    )


def load_config(path: Optional[str] = None, base_url: Optional[str] = None) -> JourneyConfig:
    """Load a JourneyConfig JSON or a journey document; no path means the built-in journey."""
    path = path or CONFIG_PATH
    if not path:
        return default_journey(base_url)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise JourneyConfigError(f"cannot read journey config {path}: {e}") from e

    if not isinstance(data, dict):
        raise JourneyConfigError(f"journey config {path} must be a JSON object, got {type(data).__name__}")
    if "companyName" in data:
        return JourneyConfig.from_journey(data, base_url=base_url)
    if base_url:
        data["base_url"] = base_url
    try:
        return JourneyConfig.model_validate(data)
    except ValidationError as e:
        raise JourneyConfigError(str(e)) from e
