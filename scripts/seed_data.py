import argparse

from stockpilot.core.logging import setup_logging
from stockpilot.database import Base, SessionLocal, engine
from stockpilot.models import import_all_models
from stockpilot.services.seed_service import clear_inventory, seed_demo_data


def parse_args():
    parser = argparse.ArgumentParser(description="Seed the demo inventory catalogue.")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear existing products, suppliers and transactions before seeding.",
    )
    return parser.parse_args()


def main():
    setup_logging()
    args = parse_args()

    import_all_models()
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        if args.reset:
            clear_inventory(db)
        if seed_demo_data(db):
            print("Seed data created.")
        else:
            print("Seed skipped: products already exist.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
