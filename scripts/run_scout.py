"""Run one scout to completion from the command line, as the scheduler would."""

import argparse
import logging
import sys

from scout_agent.config import settings
from scout_agent.database import init_db
from scout_agent.errors import ScoutAgentError
from scout_agent.services import build_services


def main():
    parser = argparse.ArgumentParser(description="Execute a scout end-to-end")
    parser.add_argument("scout_id", help="Scout ID")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings.validate_required()
    init_db()
    services = build_services(settings)

    try:
        scout, execution = services.dispatcher.run_scheduled(args.scout_id)
    except ScoutAgentError as e:
        print(f"\nFailed: {e}")
        sys.exit(1)

    print(f"\nScout: {scout.title}")
    print(f"Execution {execution.id}: {execution.status.value}")
    for step in services.step_tracker.list_steps(execution.id):
        print(f"  [{step.step_number}] {step.step_type.value:<10} {step.status.value:<10} {step.description}")
    if execution.summary_text:
        print(f"\nSummary: {execution.summary_text}")
    if execution.error_message:
        print(f"\nError: {execution.error_message}")


if __name__ == "__main__":
    main()
