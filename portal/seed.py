import json
from sqlalchemy.orm import Session
from portal.db import SessionLocal, Base, engine
from portal.models.application import Application
from portal.models.facility import Facility
from portal.services.schedule import WEEKDAYS, default_schedule, propagate_schedule


def seed() -> None:
    Base.metadata.create_all(bind=engine)
    db: Session = SessionLocal()
    try:
        weekday_schedule = default_schedule()
        weekday_schedule["sameTimeSelectedDays"] = True
        weekday_schedule["selectedDaysOpen"] = "08:00"
        weekday_schedule["selectedDaysClose"] = "17:00"
        weekday_schedule["everyDayOpen"] = "08:00"
        weekday_schedule["everyDayClose"] = "17:00"
        for day in WEEKDAYS[:5]:
            weekday_schedule["days"][day]["isOpen"] = True
        services = {"lightDuty": True, "heavyDuty": False, "open247": False, "schedule": weekday_schedule}
        propagate_schedule(services)

        application = Application(
            company_name="Roadside Towing Co",
            owner_first_name="Sam",
            owner_last_name="Rivera",
            email="dispatch@roadside-towing.example",
            phone_number="555-0100",
            facility_address1="100 Main St",
            facility_city="Springfield",
            facility_state="IL",
            facility_zip="62701",
            services_json=json.dumps(services, separators=(",", ":")),
        )
        db.add(application)
        db.commit()
        db.refresh(application)

        yard_schedule = default_schedule()
        yard_schedule["sameEveryDay"] = True
        yard_schedule["everyDayOpen"] = "06:00"
        yard_schedule["everyDayClose"] = "22:00"
        yard = {"schedule": yard_schedule}
        propagate_schedule(yard)

        main_yard = Facility(
            application_id=application.id,
            facility_name="Main Yard",
            address1="100 Main St",
            city="Springfield",
            state="IL",
            zip="62701",
            covered_zip_codes="62701,62702,62703",
            contact_name="Sam Rivera",
            contact_phone="555-0100",
            open247=False,
            schedule_json=json.dumps(yard["schedule"], separators=(",", ":")),
        )
        storage_lot = Facility(
            application_id=application.id,
            facility_name="North Storage Lot",
            address1="2200 Route 4",
            city="Springfield",
            state="IL",
            zip="62707",
            covered_zip_codes="62707",
            open247=True,
            schedule_json=json.dumps(default_schedule(), separators=(",", ":")),
        )
        db.add(main_yard)
        db.add(storage_lot)
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    seed()
