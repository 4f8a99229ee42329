"""Manually add a user and scout to the database."""

import argparse
import secrets

from sqlmodel import select

from scout_agent.database import get_session, init_db
from scout_agent.models import Frequency, Scout, User


def main():
    parser = argparse.ArgumentParser(description="Add a scout manually")
    parser.add_argument("--email", required=True, help="Owner e-mail (user is created if missing)")
    parser.add_argument("--title", required=True)
    parser.add_argument("--goal", required=True)
    parser.add_argument("--description", default="")
    parser.add_argument("--query", action="append", default=[], help="Search query (repeat up to 5 times)")
    parser.add_argument("--city", default="", help="City; omit for any location")
    parser.add_argument("--frequency", default="daily", choices=[f.value for f in Frequency])
    parser.add_argument("--inactive", action="store_true")
    args = parser.parse_args()

    if len(args.query) > 5:
        parser.error("at most 5 --query values are allowed")

    init_db()

    with get_session() as session:
        user = session.exec(select(User).where(User.email == args.email)).first()
        if not user:
            user = User(email=args.email, api_token=secrets.token_urlsafe(32))
            session.add(user)
            session.commit()
            session.refresh(user)
            print(f"Created user {user.email} (API token: {user.api_token})")

        location = (
            {"city": args.city, "latitude": None, "longitude": None}
            if args.city
            else {"city": "Any", "latitude": 0, "longitude": 0}
        )
        scout = Scout(
            user_id=user.id,
            title=args.title,
            goal=args.goal,
            description=args.description or args.goal,
            search_queries=args.query,
            location=location,
            frequency=Frequency(args.frequency),
            is_active=not args.inactive,
        )
        session.add(scout)
        session.commit()
        session.refresh(scout)
        print(f"Added scout: {scout.title} (ID: {scout.id})")


if __name__ == "__main__":
    main()
