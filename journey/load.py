import logging, time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Union

from pydantic import BaseModel

from .config import JourneyConfig
from .errors import JourneyConfigError
from .runner import JourneyRunner, StepResult

logger = logging.getLogger(__name__)


class LoadProfile(BaseModel):
    name: str
    interval: float   # seconds between virtual user arrivals
    duration: float   # seconds over which users keep arriving

    @property
    def vusers(self) -> int:
        return max(1, int(self.duration // self.interval))


PROFILES: Dict[str, LoadProfile] = {
    p.name: p for p in (
        LoadProfile(name="light", interval=30, duration=600),
        LoadProfile(name="medium", interval=15, duration=900),
        LoadProfile(name="heavy", interval=10, duration=1200),
        LoadProfile(name="stress", interval=5, duration=1800),
        LoadProfile(name="extreme", interval=3, duration=1800),
        LoadProfile(name="peak", interval=2, duration=1200),
    )
}


def get_profile(name: str) -> LoadProfile:
    try:
        return PROFILES[name]
    except KeyError:
        raise JourneyConfigError(
            f"unknown load profile {name!r}; choose from {', '.join(PROFILES)}") from None


def run_load(config: JourneyConfig, profile: Union[str, LoadProfile],
             runner_factory: Callable[[], JourneyRunner] = JourneyRunner,
             max_vusers: Optional[int] = None, first_vuser: int = 1,
             sleep: Optional[Callable[[float], None]] = None) -> Dict[int, List[StepResult]]:
    """Start one virtual user every ``profile.interval`` seconds and wait for all of them.

    Each user gets its own runner (and so its own HTTP client and trace
    context). Returns step results keyed by virtual user id.
    """
    sleep = sleep or time.sleep
    if isinstance(profile, str):
        profile = get_profile(profile)
    count = profile.vusers if max_vusers is None else max(1, min(profile.vusers, max_vusers))
    logger.info("profile %s: %d virtual users, one every %ss", profile.name, count, profile.interval)

    futures = {}
    with ThreadPoolExecutor(max_workers=count, thread_name_prefix="vuser") as pool:
        for i in range(count):
            if i:
                sleep(profile.interval)
            vuser_id = first_vuser + i
            futures[vuser_id] = pool.submit(runner_factory().run, config, vuser_id)
        return {vuser_id: f.result() for vuser_id, f in futures.items()}
