"""
Zeus Meteo command line

Usage:
    python -m zeus_meteo "Madrid, Spain"
    python -m zeus_meteo "Madrid, Spain" 2026-10-20 --forecast
    python -m zeus_meteo Tokyo --week
    python -m zeus_meteo "Buenos Aires" --coords
    python -m zeus_meteo Lisbon --save reports/lisbon.txt

Exit code 0 on success, 1 when no data could be retrieved or on any
unexpected error.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from colorama import Fore, Style, init

from zeus_meteo import __version__
from zeus_meteo.agent import WeatherAgent
from zeus_meteo.config import Settings
from zeus_meteo.errors import NoDataAvailable, WeatherError
from zeus_meteo.models import DailyForecastResult

logger = logging.getLogger(__name__)

LOG_DIR = "logs"
LOG_FILE = os.path.join(LOG_DIR, "zeus_meteo.log")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="zeus-meteo",
        description="Zeus Meteo - multi-source weather reconciliation",
    )
    parser.add_argument("location", help='Place name, e.g. "Madrid, Spain"')
    parser.add_argument("date", nargs="?", default=None, help="Target date (YYYY-MM-DD), defaults to today")
    parser.add_argument("--forecast", action="store_true", help="Use forecast readings instead of current conditions")
    parser.add_argument("--save", metavar="FILE", help="Also write the report to FILE")
    parser.add_argument("--week", action="store_true", help="Show the 7-day daily forecast instead of a report")
    parser.add_argument("--coords", action="store_true", help="Only resolve the location to coordinates")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    os.makedirs(LOG_DIR, exist_ok=True)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE, mode='a', encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )


def print_banner(agent: WeatherAgent):
    """Print the system banner."""
    print(f"\n{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}")
    print(f"{Fore.CYAN}   ZEUS METEO: MULTI-SOURCE WEATHER RECONCILIATION{Style.RESET_ALL}")
    print(f"{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}")
    print(f"{Fore.WHITE}   [SOURCES] {' + '.join(agent.orchestrator.source_names)}{Style.RESET_ALL}")
    print()


def format_daily(result: DailyForecastResult) -> str:
    color = Fore.YELLOW if result.is_estimated else Fore.GREEN
    lines = [f"{color}Daily forecast ({result.source}, {result.provider}){Style.RESET_ALL}"]
    for point in result.forecast:
        marker = " (estimated)" if point.estimated else ""
        lines.append(
            f"  {point.date}  {point.temperature_min:5.1f}°C / {point.temperature_max:5.1f}°C  "
            f"{point.description:<22} rain {point.precipitation:4.1f} mm  wind {point.wind_max:4.1f} m/s{marker}"
        )
    return "\n".join(lines)


async def run(args: argparse.Namespace, settings: Settings) -> int:
    async with WeatherAgent.from_settings(settings) as agent:
        print_banner(agent)

        if args.coords:
            coords = await agent.get_coordinates(args.location)
            print(f"{Fore.GREEN}{coords['name']}, {coords.get('country', '')}{Style.RESET_ALL} "
                  f"({coords['latitude']:.4f}, {coords['longitude']:.4f})")
            return 0

        if args.week:
            result = await agent.get_7day_forecast(args.location)
            output = format_daily(result)
            print(output)
            if args.save:
                agent.save_report(output, args.save)
            return 0

        mode = "forecast" if args.forecast else "current conditions"
        print(f"{Fore.YELLOW}[1/2]{Style.RESET_ALL} Polling sources for '{args.location}' ({mode})...")
        analysis = await agent.analyze(args.location, args.date, use_forecast=args.forecast)

        print(f"      {Fore.GREEN}OK{Style.RESET_ALL} - {analysis.ensemble.source_count} sources, "
              f"confidence {analysis.ensemble.confidence}%")
        for failure in analysis.failures:
            print(f"      {Fore.RED}UNAVAILABLE{Style.RESET_ALL} - {failure.source}: {failure.reason}")

        print(f"{Fore.YELLOW}[2/2]{Style.RESET_ALL} Report\n")
        print(analysis.report)

        if args.save:
            path = agent.save_report(analysis.report, args.save)
            print(f"{Fore.GREEN}Saved to {path}{Style.RESET_ALL}")
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    init()

    try:
        return asyncio.run(run(args, settings))
    except NoDataAvailable as e:
        print(f"{Fore.RED}{e}{Style.RESET_ALL}")
        for failure in e.failures:
            print(f"  {Fore.RED}UNAVAILABLE{Style.RESET_ALL} - {failure.source}: {failure.reason}")
        logger.error(f"[main] {e}")
        return 1
    except WeatherError as e:
        print(f"{Fore.RED}Error: {e}{Style.RESET_ALL}")
        logger.error(f"[main] {e}")
        return 1
    except KeyboardInterrupt:
        print(f"\n{Fore.YELLOW}Interrupted{Style.RESET_ALL}")
        return 1
    except Exception as e:
        print(f"{Fore.RED}Unexpected error: {e}{Style.RESET_ALL}")
        logger.error(f"[main] Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
