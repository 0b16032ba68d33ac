#!/usr/bin/env python3
"""Seed the promos table with sample promotions when it is empty."""
import sys
from datetime import date, timedelta
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from glamlink import create_app
from glamlink.extensions import db
from glamlink.models import Promo


def sample_promos(today: date) -> list[dict]:
    return [
        {
            "title": "Summer Glow Facial",
            "description": "Brightening facial with vitamin C infusion and LED finish",
            "image": "/images/promos/summer-glow.jpg",
            "link": "/promos/summer-glow",
            "cta_text": "Book Now",
            "start_date": today - timedelta(days=7),
            "end_date": today + timedelta(days=30),
            "featured": True,
            "category": "Skincare",
            "discount": 20,
            "priority": 9,
        },
        {
            "title": "Lash Lift Launch",
            "description": "Introductory pricing on lash lift and tint",
            "image": "/images/promos/lash-lift.jpg",
            "link": "/promos/lash-lift",
            "cta_text": "Claim Offer",
            "start_date": today,
            "end_date": today + timedelta(days=14),
            "featured": False,
            "category": "Lashes",
            "discount": 15,
            "priority": 6,
        },
        {
            "title": "Bridal Hair Trials",
            "description": "Free consultation with every bridal trial booked this season",
            "image": "/images/promos/bridal-hair.jpg",
            "link": "/promos/bridal-hair",
            "cta_text": "Learn More",
            "start_date": today + timedelta(days=10),
            "end_date": today + timedelta(days=60),
            "featured": False,
            "category": "Hair",
            "discount": 0,
            "priority": 4,
        },
    ]


def seed_promos():
    """Insert sample promos unless promos already exist."""
    app = create_app()

    with app.app_context():
        existing_count = Promo.query.count()
        if existing_count > 0:
            print(f"Promos already present ({existing_count}). Skipping...")
            return

        for promo_data in sample_promos(date.today()):
            db.session.add(Promo(popup_display=promo_data["title"], visible=True, extra={"source": "seed"}, **promo_data))
            print(f"  Added: {promo_data['title']} ({promo_data['category']})")

        db.session.commit()
        print(f"\nPromos seeded successfully! Total promos: {Promo.query.count()}")

if __name__ == "__main__":
    seed_promos()
