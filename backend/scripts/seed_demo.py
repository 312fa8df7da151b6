"""CLI script to seed a local database with demo listings.

Usage: python scripts/seed_demo.py [--password PASSWORD]

Creates a demo landlord (`demo_landlord`) and a demo student
(`demo_student`), six accommodation listings and a handful of
marketplace items. Running it twice does not duplicate listings.
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `campus_hub` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from campus_hub.database import engine, create_db_and_tables
from campus_hub import services, repositories

ACCOMMODATIONS = [
    dict(name="University Gardens", location="Campus North", price=450, room_type="Single", capacity=1,
         amenities=["WiFi", "Parking", "Laundry", "Study Room"], rating=4.5, available=True,
         description="Modern single rooms with excellent study facilities"),
    dict(name="Student Village", location="Campus East", price=350, room_type="Shared", capacity=2,
         amenities=["WiFi", "Kitchen", "Common Room"], rating=4.2, available=True,
         description="Affordable shared accommodation with great community feel"),
    dict(name="Oak Hall Residence", location="City Center", price=550, room_type="Studio", capacity=1,
         amenities=["WiFi", "Parking", "Kitchen", "Gym", "Security"], rating=4.8, available=True,
         description="Premium studio apartments with full amenities"),
    dict(name="Maple House", location="Campus South", price=320, room_type="Shared", capacity=3,
         amenities=["WiFi", "Kitchen", "Laundry"], rating=4.0, available=False,
         description="Budget-friendly triple sharing with basic amenities"),
    dict(name="Pine Ridge", location="Campus West", price=480, room_type="Double", capacity=2,
         amenities=["WiFi", "Parking", "Kitchen", "Study Room", "Security"], rating=4.6, available=True,
         description="Spacious double rooms with modern facilities"),
    dict(name="Cedar Lodge", location="Campus North", price=280, room_type="Shared", capacity=4,
         amenities=["WiFi", "Kitchen", "Common Room"], rating=3.8, available=True,
         description="Economical quad sharing perfect for tight budgets"),
]

ITEMS = [
    dict(title="Calculus Textbook - Early Transcendentals", price=45, original_price=120, category="Books",
         condition="Good", location="Campus North", seller_name="Sarah M.", seller_contact="sarah@example.edu",
         description="Used for Math 101. Minimal highlighting, no missing pages."),
    dict(title="MacBook Air M1 - 256GB", price=850, original_price=1200, category="Electronics",
         condition="Excellent", location="Campus East", seller_name="Mike Chen", seller_contact="555-0102",
         description="Lightly used, includes charger and original box."),
    dict(title="IKEA Study Desk - White", price=60, original_price=99, category="Furniture",
         condition="Good", location="Campus South", seller_name="Priya K.", seller_contact="priya@example.edu",
         description="Sturdy desk, easy to disassemble for pickup."),
    dict(title="Mini Fridge", price=75, category="Appliances", condition="Fair",
         location="City Center", seller_name="Tom R.", seller_contact="tom@example.edu",
         description="Works well, a few scratches on the door."),
    dict(title="Lab Coat and Goggles", price=20, original_price=45, category="Lab Equipment",
         condition="Excellent", location="Campus West", seller_name="Ana L.", seller_contact="555-0199",
         description="Worn for one semester of Chem 110."),
]


def main(password: str = "demo"):
    """Create demo users and listings, skipping rows that already exist."""
    create_db_and_tables()
    with Session(engine) as session:
        auth = services.AuthService(session)
        landlord = auth.register("demo_landlord", password, role="landlord")
        student = auth.register("demo_student", password, role="student")
        services.ProfileService(session).upsert(landlord.id, {"display_name": "Demo Landlord", "role": "landlord"})
        services.ProfileService(session).upsert(student.id, {"display_name": "Demo Student", "university": "State University",
                                                             "year_of_study": 2, "role": "student"})
        existing = {a.name for a in repositories.AccommodationRepository(session).list_by_landlord(landlord.id)}
        acc_svc = services.AccommodationService(session)
        created = 0
        for row in ACCOMMODATIONS:
            if row["name"] in existing:
                continue
            acc_svc.create(landlord.id, row)
            created += 1
        print(f'Accommodations created: {created}, skipped {len(ACCOMMODATIONS) - created}')
        titles = {i.title for i in repositories.MarketplaceRepository(session).list_by_user(student.id)}
        item_svc = services.MarketplaceService(session)
        created = 0
        for row in ITEMS:
            if row["title"] in titles:
                continue
            item_svc.create(student.id, row)
            created += 1
        print(f'Marketplace items created: {created}, skipped {len(ITEMS) - created}')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--password', default='demo', help='Password for the demo accounts')
    args = parser.parse_args()
    main(password=args.password)
