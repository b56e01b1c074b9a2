import itertools
import httpx
from locust import User, task, constant

from journey import JourneyRunner, StepFailed, load_config
from journey.config import ERROR_RATE
from journey.runner import client_options

_vuser_ids = itertools.count(1)


class JourneyUser(User):
    """One virtual user per Locust user; each step is reported as a Locust request."""
    # the journey carries its own per-step waits
    wait_time = constant(0)
    error_rate = ERROR_RATE

    def on_start(self):
        self.vuser_id = next(_vuser_ids)
        self.config = load_config(base_url=self.host)
        self.http = httpx.Client(**client_options())
        self.runner = JourneyRunner(client=self.http, error_rate=self.error_rate)

    def on_stop(self):
        self.http.close()

    @task
    def journey(self):
        for r in self.runner.run(self.config, vuser_id=self.vuser_id):
            self.environment.events.request.fire(
                request_type="STEP",
                name=r.transaction,
                response_time=r.duration * 1000,
                response_length=0,
                exception=None if r.passed else StepFailed(r),
                context={"vuser_id": self.vuser_id, "status_code": r.status_code},
            )
