# scripts/setup/init_db.py
"""
Initialize database: creates the documents table and seeds the default
vehicle types. Run once before first launch.
Usage: python scripts/setup/init_db.py [--demo]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from app.database import create_tables, engine
from app.config import settings
from app.services.document_store import SqlDocumentStore
from app.services.geofence import load_geofence
from app.services.vehicle_store import VehicleStore
from app.services.vehicle_type_registry import VehicleTypeRegistry
from app.services.demo_fleet import seed_demo_fleet
from sqlalchemy import inspect, text


def main():
    parser = argparse.ArgumentParser(description="Create tables and seed vehicle types")
    parser.add_argument("--demo", action="store_true", help="Also load the demo fleet into an empty store")
    args = parser.parse_args()

    print("🗄️  NEXSE Fleet DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    tables = inspect(engine).get_table_names()
    print(f"✅ Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    documents = SqlDocumentStore()
    registry = VehicleTypeRegistry(documents)     # seeds defaults on first read
    print("\n🚦 Vehicle types:")
    for vt in registry.all():
        print(f"   {vt.icon} {vt.id.value:<8} step={vt.step} {'enabled' if vt.enabled else 'disabled'}")

    if args.demo:
        count = seed_demo_fleet(VehicleStore(documents), load_geofence(settings.GEOFENCE_FILE))
        print(f"\n🚕 Demo fleet: {count} vehicles written" if count else "\n🚕 Store not empty, demo fleet skipped")

    print("\n🎉 Database ready! You can now start the backend:")
    print("   uvicorn app.main:app --host 0.0.0.0 --port 8080 --reload")


if __name__ == "__main__":
    main()
