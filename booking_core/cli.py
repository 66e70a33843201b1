"""
Command-line demo against an in-memory calendar. No network, no API keys.

Usage:
    python main.py availability --service plumbing --date 2026-10-20
    python main.py classify "My sink is leaking everywhere!"
    python main.py book --service hvac --date 2026-10-20 --time 10:00 --technician T1
"""

import argparse
import asyncio
import sys
from datetime import date, datetime
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from booking_core.classification.service import ClassificationService
from booking_core.config import settings
from booking_core.schemas.scheduling_schema import BookingRequest, CustomerInfo
from booking_core.store.memory import InMemoryBookingStore
from booking_core.tools.availability import check_availability
from booking_core.tools.booking import BookingService
from booking_core.tools.notifications import RecordingNotifier
from booking_core.tools.technicians import InMemoryTechnicianDirectory, TechnicianRecord

GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_ROSTER = [
    TechnicianRecord(id="T1", name="Mike T.", skills=["plumbing", "hvac"]),
    TechnicianRecord(id="T2", name="Sarah L.", skills=["plumbing", "electrical"]),
    TechnicianRecord(id="T3", name="James K.", skills=["electrical", "handyman"]),
]


def build_demo_service() -> tuple[BookingService, RecordingNotifier]:
    notifier = RecordingNotifier()
    service = BookingService(
        store=InMemoryBookingStore(),
        technicians=InMemoryTechnicianDirectory(list(DEMO_ROSTER)),
        notifier=notifier,
    )
    return service, notifier


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date {value!r}, expected YYYY-MM-DD") from None


def _cmd_availability(args: argparse.Namespace) -> int:
    service, _ = build_demo_service()
    result = check_availability(service, args.service, args.date, preferred_time=args.time)
    color = GREEN if result["available"] else YELLOW
    print(f"{color}{BOLD}{result['message']}{RESET}")
    for slot in result["slots"]:
        print(f"  {slot['date']} {slot['time']}  technician={slot['technician']}")
    if result["next_available"]:
        print(f"{DIM}  next available: {result['next_available']}{RESET}")
    return 0


def _cmd_classify(args: argparse.Namespace) -> int:
    outcome = asyncio.run(ClassificationService().classify(args.text))
    c = outcome.classification
    print(f"{GREEN}{BOLD}{c.service_type.value}{RESET} urgency={c.urgency.value} "
          f"confidence={c.confidence:.2f} duration={c.estimated_duration_minutes}min")
    print(f"{DIM}  {c.reasoning} (source: {outcome.source}){RESET}")
    return 0


def _cmd_book(args: argparse.Namespace) -> int:
    service, notifier = build_demo_service()
    tz = ZoneInfo(settings.hours.timezone)
    hour, minute = (int(part) for part in args.time.split(":"))
    start = datetime(args.date.year, args.date.month, args.date.day, hour, minute, tzinfo=tz)
    request = BookingRequest(
        customer=CustomerInfo(
            name=args.name, phone=args.phone, email=args.email, address=args.address
        ),
        service_type=args.service,
        technician_id=args.technician,
        start_time=start,
    )
    outcome = service.create_booking(request)
    if not outcome.success:
        print(f"{RED}{BOLD}Booking {outcome.status}{RESET}")
        for error in outcome.errors:
            print(f"{RED}  - {error}{RESET}")
        if outcome.suggested_start:
            print(f"{DIM}  try {outcome.suggested_start.isoformat()}{RESET}")
        return 1

    booking = outcome.booking
    print(f"{GREEN}{BOLD}Booked {booking.service_type} with {booking.technician_id}{RESET}")
    print(f"  {booking.start_time.isoformat()} -> {booking.end_time.isoformat()}")
    print(f"  confirmation code: {booking.confirmation_code}")
    for warning in outcome.warnings:
        print(f"{YELLOW}  ! {warning}{RESET}")
    print(f"{DIM}  {len(notifier.sent)} notice(s) queued{RESET}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="booking-core", description=__doc__.split("\n")[1])
    sub = parser.add_subparsers(dest="command", required=True)

    avail = sub.add_parser("availability", help="List free slots for a service on a date")
    avail.add_argument("--service", required=True)
    avail.add_argument("--date", required=True, type=_parse_date)
    avail.add_argument("--time", default=None, help="Preferred HH:MM")
    avail.set_defaults(func=_cmd_availability)

    classify = sub.add_parser("classify", help="Classify a free-text request (keyword fallback)")
    classify.add_argument("text")
    classify.set_defaults(func=_cmd_classify)

    book = sub.add_parser("book", help="Create a booking in the demo calendar")
    book.add_argument("--service", required=True)
    book.add_argument("--date", required=True, type=_parse_date)
    book.add_argument("--time", required=True, help="HH:MM in the business timezone")
    book.add_argument("--technician", default="T1")
    book.add_argument("--name", default="Demo Customer")
    book.add_argument("--phone", default="555-123-4567")
    book.add_argument("--email", default="demo@example.com")
    book.add_argument("--address", default="1 Demo Street")
    book.set_defaults(func=_cmd_book)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
