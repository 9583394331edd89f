import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ppets.engine import run_scenario
from ppets.log import logging_sink


def main():
    if len(sys.argv) < 2:
        print("Usage: python tools/run_scenario.py <scenario.yaml> [--verbose]")
        sys.exit(2)
    logging.basicConfig(
        level=logging.DEBUG if "--verbose" in sys.argv[2:] else logging.INFO,
        format="%(levelname)-7s %(message)s",
    )

    result = run_scenario(Path(sys.argv[1]), logger=logging_sink())
    print(f"Status:    {result.status.name}")
    print(f"Outcomes:  {', '.join(o.name for o in result.outcomes) or '-'}")
    print(f"Exchanges: {result.exchanges}")
    if result.reason:
        print(f"Reason:    {result.reason}")
    if result.skipped_checks:
        print(f"SKIPPED:   {', '.join(result.skipped_checks)}")
    sys.exit(0 if result.succeeded else 1)


if __name__ == "__main__":
    main()
