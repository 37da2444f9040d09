# debug_orchestrator.py
import asyncio
import json
import sys

from trip_planner.errors import TripPlannerError
from trip_planner.orchestrator import TravelLegOrchestrator


async def main():
    origin = sys.argv[1] if len(sys.argv) > 1 else "東京駅"
    destination = sys.argv[2] if len(sys.argv) > 2 else "成田空港"
    mode = sys.argv[3] if len(sys.argv) > 3 else None

    orchestrator = TravelLegOrchestrator()
    print(f"backend: {type(orchestrator.route_lookup).__name__}")
    try:
        result = await orchestrator.travel_time(origin, destination, mode)
    except TripPlannerError as exc:
        print(json.dumps({"error": exc.message}, ensure_ascii=False, indent=2))
        return
    print(json.dumps(result.model_dump(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    asyncio.run(main())
