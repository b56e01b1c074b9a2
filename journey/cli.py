import argparse, logging, random, sys
from typing import Dict, List, Optional

from .config import ERROR_RATE, load_config
from .errors import JourneyConfigError
from .load import PROFILES, run_load
from .runner import JourneyRunner, StepResult


def error_rate(value):
    rate = float(value)
    if not 0 <= rate <= 1:
        raise argparse.ArgumentTypeError(f"error rate must be within [0, 1], got {value}")
    return rate


def log_level(value):
    level = getattr(logging, value.upper(), None)
    if not isinstance(level, int):
        raise argparse.ArgumentTypeError(f"unknown log level {value!r}")
    return level


parser = argparse.ArgumentParser(
    prog="journey-runner",
    description="Replay a customer journey against a target service with correlation headers",
)
parser.add_argument("--config", help="JourneyConfig JSON or journey document. Defaults to $JOURNEY_CONFIG, then the built-in retail journey.")
parser.add_argument("--base-url", help="Target base URL. Overrides the config and $JOURNEY_BASE_URL.")
parser.add_argument("--error-rate", type=error_rate, default=ERROR_RATE, help="Simulated step failure probability. Default %(default)s")
parser.add_argument("--seed", type=int, help="Seed for the simulated failure draw")
parser.add_argument("--vuser-id", type=int, default=1, help="Virtual user id for a single run. Default 1")
parser.add_argument("--profile", choices=sorted(PROFILES), help="Run a load profile instead of a single journey")
parser.add_argument("--max-vusers", type=int, help="Cap the number of virtual users a profile starts")
parser.add_argument("--log-level", type=log_level, default="INFO", help="Python logging level (INFO, DEBUG, ...).")


def report(results: Dict[int, List[StepResult]], out=None):
    if out is None:
        out = sys.stdout
    passed = failed = 0
    for vuser_id, steps in sorted(results.items()):
        for r in steps:
            detail = f"  {r.failure.value}: {r.error}" if r.failure else ""
            print(f"VU {vuser_id:<4} {r.transaction:<32} {r.outcome.value.upper():<5} {r.duration:8.3f}s{detail}", file=out)
            if r.passed:
                passed += 1
            else:
                failed += 1
    print(f"{passed} passed, {failed} failed", file=out)


def main(argv: Optional[List[str]] = None) -> int:
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    try:
        config = load_config(args.config, base_url=args.base_url)
    except JourneyConfigError as e:
        parser.error(str(e))

    seeds = random.Random(args.seed) if args.seed is not None else None

    def new_runner():
        rng = random.Random(seeds.random()) if seeds else None
        return JourneyRunner(error_rate=args.error_rate, rng=rng)

    if args.profile:
        results = run_load(config, args.profile, runner_factory=new_runner, max_vusers=args.max_vusers)
    else:
        results = {args.vuser_id: new_runner().run(config, vuser_id=args.vuser_id)}
    report(results)
    return 0
