#!/usr/bin/env python3
"""
Seed script to create demo tables, reservations and settings
"""

import asyncio
from datetime import datetime, time, timedelta


async def seed_demo_data():
    """Seed demo data for development"""
    from dinebook.api.auth import StaffRole, create_access_token
    from dinebook.database import SessionLocal, engine, Base
    from dinebook.models import DiningTable, ExpirationSettings, Reservation, ReservationStatus
    from dinebook.models.settings import EXPIRATION_SETTINGS_ID
    from dinebook.services.state_machine import ReservationStateMachine
    from dinebook.timeutil import venue_now

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if demo data already exists
        if await db.get(DiningTable, "T1") is not None:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo tables...")

        tables_data = [
            {"id": "T1", "name": "Window 1", "capacity": 2, "type": "regular", "location": "window"},
            {"id": "T2", "name": "Window 2", "capacity": 2, "type": "regular", "location": "window"},
            {"id": "T3", "name": "Booth 1", "capacity": 4, "type": "booth", "location": "interior"},
            {"id": "T4", "name": "Booth 2", "capacity": 6, "type": "booth", "location": "interior"},
            {"id": "T5", "name": "Bar", "capacity": 3, "type": "counter", "location": "bar"},
            {"id": "T6", "name": "Patio", "capacity": 8, "type": "outdoor", "location": "outdoor_patio"},
            {"id": "T7", "name": "Private Room", "capacity": 12, "type": "private", "location": "private_room"},
        ]
        for table_data in tables_data:
            db.add(DiningTable(**table_data))

        db.add(ExpirationSettings(
            id=EXPIRATION_SETTINGS_ID,
            is_enabled=True,
            expiration_minutes=30,
            reminder_minutes=60,
            auto_mark_no_show=True,
            send_expiration_notification=True,
        ))

        print("Creating demo reservations...")

        today = venue_now().date()
        tomorrow = today + timedelta(days=1)
        reservations_data = [
            {"id": "R-1001", "name": "Alice Moreno", "phone": "+15551230001", "date": today, "time": time(19, 0), "party_size": 2, "source": "web"},
            {"id": "R-1002", "name": "Ben Carter", "phone": "+15551230002", "date": today, "time": time(20, 30), "party_size": 4, "source": "phone"},
            {"id": "R-1003", "name": "Chloe Tan", "phone": "+15551230003", "date": tomorrow, "time": time(12, 15), "party_size": 6, "source": "web", "special_requests": "Birthday, high chair needed"},
            {"id": "R-1004", "name": "Daniel Okafor", "phone": "+15551230004", "date": tomorrow, "time": time(18, 45), "party_size": 3, "source": "walk-in"},
        ]
        for reservation_data in reservations_data:
            db.add(Reservation(status=ReservationStatus.PENDING, **reservation_data))

        await db.commit()

        machine = ReservationStateMachine(db, actor="seed")
        await machine.transition("R-1002", ReservationStatus.BOOKED, table_id="T3")
        await machine.transition("R-1003", ReservationStatus.CONFIRMED)

    print(f"""
Demo data created successfully!

Tables: {len(tables_data)} created
Reservations: {len(reservations_data)} created (R-1002 booked at T3, R-1003 confirmed)
Expiration: enabled, 30 minute grace period, no-show on expiry

Development tokens (valid 12 hours):
  Admin:  {create_access_token("admin", StaffRole.ADMIN, name="Demo Admin", minutes=720)}
  Host:   {create_access_token("host", StaffRole.HOST, name="Demo Host", minutes=720)}
  Viewer: {create_access_token("viewer", StaffRole.VIEWER, name="Demo Viewer", minutes=720)}
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
