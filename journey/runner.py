import logging, random, time, uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

import httpx
from pydantic import BaseModel

from .config import ERROR_RATE, TIMEOUT, JourneyConfig, StepDefinition
from .trace import CORRELATION_HEADER, TraceContext

logger = logging.getLogger(__name__)

COMPANY_HEADER = "X-Company"
STEP_HEADER = "X-Journey-Step"
SUMMARY_PATH = "/api/journey-complete"
START_STEP = "Journey_Start"
SUMMARY_STEP = "Journey_Complete"


class Outcome(str, Enum):
    PASS = "pass"
    FAIL = "fail"


class FailureKind(str, Enum):
    TRANSPORT = "transport"
    SIMULATED = "simulated"


class StepResult(BaseModel):
    step: str
    transaction: str
    outcome: Outcome
    duration: float                       # seconds, request plus wait
    latency: Optional[float] = None       # seconds, request only
    status_code: Optional[int] = None
    failure: Optional[FailureKind] = None
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.outcome is Outcome.PASS


def client_options() -> dict:
    return {"timeout": TIMEOUT} if TIMEOUT is not None else {}


class JourneyRunner:
    """Runs a journey for one virtual user, one step at a time.

    Every step gets exactly one request attempt. A step fails when the
    transport fails or when the simulated error draw hits; neither stops the
    journey, and the summary event is posted once at the end regardless.

    ``rng``, ``sleep`` and ``clock`` are injectable so runs can be made
    deterministic.
    """

    def __init__(self, client: Optional[httpx.Client] = None, error_rate: float = ERROR_RATE,
                 rng: Optional[random.Random] = None, sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.perf_counter):
        if not 0 <= error_rate <= 1:
            raise ValueError(f"error_rate must be within [0, 1], got {error_rate}")
        self.client = client
        self.error_rate = error_rate
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.clock = clock

    def run(self, config: JourneyConfig, vuser_id: int = 1,
            session_id: Optional[str] = None) -> List[StepResult]:
        trace = TraceContext(
            vuser_id=vuser_id,
            session_id=session_id or uuid.uuid4().hex,
            step=START_STEP,
            script=config.script_name,
            test=config.test_name,
        )
        if self.client is not None:
            return self._run(self.client, config, trace)
        with httpx.Client(**client_options()) as client:
            return self._run(client, config, trace)

    def _run(self, client: httpx.Client, config: JourneyConfig, trace: TraceContext) -> List[StepResult]:
        logger.info("VU %s starting %s (%d steps) against %s",
                    trace.vuser_id, config.test_name, len(config.steps), config.base_url)
        results: List[StepResult] = []
        try:
            for step in config.steps:
                results.append(self.run_step(client, config, step, trace.for_step(step.name)))
        finally:
            self.send_summary(client, config, trace)
        failed = sum(1 for r in results if not r.passed)
        logger.info("VU %s finished %s: %d passed, %d failed",
                    trace.vuser_id, config.test_name, len(results) - failed, failed)
        return results

    def run_step(self, client: httpx.Client, config: JourneyConfig, step: StepDefinition,
                 trace: TraceContext) -> StepResult:
        headers = {
            CORRELATION_HEADER: trace.header(),
            COMPANY_HEADER: config.company,
            STEP_HEADER: step.name,
        }
        content = None
        if step.method not in ("GET", "HEAD"):
            headers["Content-Type"] = "application/json"
            content = step.render_body(config.company, trace)

        failure = error = status_code = latency = None
        t0 = self.clock()
        try:
            r = client.request(step.method, config.url(step.path), headers=headers, content=content)
            latency = self.clock() - t0
            status_code = r.status_code
        except httpx.RequestError as e:
            failure, error = FailureKind.TRANSPORT, f"{type(e).__name__}: {e}"
            logger.warning("%s: transport failure for VU %s: %s", step.transaction, trace.vuser_id, error)

        self.sleep(step.wait)

        # one draw per step, whatever the transport outcome
        simulated = self.error_rate > 0 and self.rng.random() < self.error_rate
        if failure is None and simulated:
            failure, error = FailureKind.SIMULATED, f"Simulated error in step: {step.name}"
            logger.info("%s: %s (VU %s)", step.transaction, error, trace.vuser_id)

        result = StepResult(
            step=step.name,
            transaction=step.transaction,
            outcome=Outcome.PASS if failure is None else Outcome.FAIL,
            duration=self.clock() - t0,
            latency=latency,
            status_code=status_code,
            failure=failure,
            error=error,
        )
        logger.debug("%s -> %s in %.3fs (status %s)", result.transaction, result.outcome.value,
                     result.duration, result.status_code)
        return result

    def send_summary(self, client: httpx.Client, config: JourneyConfig,
                     trace: TraceContext) -> Optional[int]:
        trace = trace.for_step(SUMMARY_STEP)
        event = {
            "eventType": "JOURNEY_COMPLETE",
            "companyName": config.company,
            "testName": config.test_name,
            "scriptName": config.script_name,
            "vuserId": trace.vuser_id,
            "sessionId": trace.session_id,
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "totalSteps": len(config.steps),
        }
        headers = {CORRELATION_HEADER: trace.header(), COMPANY_HEADER: config.company}
        try:
            r = client.post(config.url(SUMMARY_PATH), headers=headers, json=event)
        except httpx.RequestError as e:
            logger.warning("journey summary for VU %s not delivered: %s", trace.vuser_id, e)
            return None
        return r.status_code
