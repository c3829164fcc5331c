# app/services/demo_fleet.py
"""
Demo fleet spread across the Iraqi governorates, so the map has something
to show before real drivers register. Loaded only into an empty store.
"""

from datetime import datetime, timedelta

from app.schemas.vehicle import Location, VehicleRecord
from app.schemas.vehicle_type import VehicleKind
from app.services.geofence import GeofenceValidator
from app.services.vehicle_store import VehicleStore
from app.utils.logger import get_logger
from app.utils.password_hashing import hash_password

logger = get_logger(__name__)

DEMO_PASSWORD = "demo123"

# (id, name, plate, type, governorate, lat, lng, online, days registered, extra)
DEMO_VEHICLES = [
    ("driver_001", "Ahmed Al-Baghdadi",    "بغداد 1234",      "taxi",    "Baghdad",      33.3152, 44.3661, True,  30, {"taxi_number": "BG-001"}),
    ("driver_002", "Fatima Al-Kadhimi",    "بغداد 5678",      "minibus", "Baghdad",      33.2804, 44.4016, True,  25, {}),
    ("driver_003", "Omar Hassan",          "بغداد 9012",      "bus",     "Baghdad",      33.3406, 44.4009, True,  20,
     {"route_from": "Tahrir Square", "route_to": "Baghdad Airport"}),
    ("driver_004", "Sara Al-Mansouri",     "بغداد 3456",      "van",     "Baghdad",      33.2500, 44.4000, False, 15, {}),
    ("driver_005", "Ali Al-Sadr",          "بغداد 7890",      "tuk-tuk", "Baghdad",      33.3700, 44.3400, True,  10, {}),
    ("driver_006", "Hassan Al-Basri",      "البصرة 1111",     "taxi",    "Basra",        30.5085, 47.7804, True,  40, {"taxi_number": "BS-001"}),
    ("driver_007", "Layla Al-Fayha",       "البصرة 2222",     "minibus", "Basra",        30.4800, 47.8200, True,  35, {}),
    ("driver_008", "Qasim Al-Shatt",       "البصرة 3333",     "bus",     "Basra",        30.5300, 47.7500, True,  30,
     {"route_from": "Basra Center", "route_to": "Umm Qasr Port"}),
    ("driver_009", "Karwan Abdullah",      "أربيل 4444",      "taxi",    "Erbil",        36.1911, 44.0094, True,  28, {"taxi_number": "ER-001"}),
    ("driver_010", "Shilan Majeed",        "أربيل 5555",      "van",     "Erbil",        36.2200, 43.9800, False, 22, {}),
    ("driver_011", "Hiwa Saleh",           "السليمانية 6666", "taxi",    "Sulaymaniyah", 35.5492, 45.4394, True,  18, {"taxi_number": "SU-001"}),
    ("driver_012", "Dilan Ahmad",          "السليمانية 7777", "minibus", "Sulaymaniyah", 35.5600, 45.4200, True,  12, {}),
    ("driver_013", "Yusuf Al-Mosuli",      "الموصل 8888",     "taxi",    "Mosul",        36.3350, 43.1189, True,  45, {"taxi_number": "MO-001"}),
    ("driver_014", "Maryam Al-Hadba",      "الموصل 9999",     "van",     "Mosul",        36.3100, 43.1400, False,  8, {}),
    ("driver_015", "Haider Al-Najafi",     "النجف 0001",      "taxi",    "Najaf",        32.0086, 44.3320, True,  50, {"taxi_number": "NJ-001"}),
    ("driver_016", "Zahra Al-Kufa",        "النجف 0002",      "bus",     "Najaf",        32.0300, 44.3100, True,  33,
     {"route_from": "Najaf Shrine", "route_to": "Kufa Mosque"}),
    ("driver_017", "Hussein Al-Karbalaei", "كربلاء 0003",     "taxi",    "Karbala",      32.6100, 44.0244, True,  27, {"taxi_number": "KA-001"}),
    ("driver_018", "Sumaya Al-Husseini",   "كربلاء 0004",     "minibus", "Karbala",      32.5900, 44.0500, True,   5, {}),
    ("driver_019", "Noor Al-Kirkuki",      "كركوك 0005",      "taxi",    "Kirkuk",       35.4681, 44.3922, True,   3, {"taxi_number": "KI-001"}),
    ("driver_020", "Salam Al-Diyali",      "ديالى 0006",      "van",     "Diyala",       33.7498, 44.6198, False,  2, {}),
    ("driver_021", "Khalil Al-Anbari",     "الأنبار 0007",    "tuk-tuk", "Anbar",        33.4206, 43.2889, True,  14, {}),
    ("driver_022", "Amina Al-Babili",      "بابل 0008",       "taxi",    "Babylon",      32.5426, 44.4205, True,   9, {"taxi_number": "BA-001"}),
]


def build_demo_fleet(now: datetime, password_hash: str = None) -> list[VehicleRecord]:
    password_hash = password_hash or hash_password(DEMO_PASSWORD)
    fleet = []
    for index, (vid, name, plate, kind, gov, lat, lng, online, days, extra) in enumerate(DEMO_VEHICLES, start=1):
        fleet.append(VehicleRecord(
            id=vid,
            name=name,
            email=f"{vid}@demo.nexse.iq",
            phone=f"0790{index:07d}",
            license_number=f"{gov[:2].upper()}{index:06d}",
            plate=plate,
            vehicle_type=VehicleKind(kind),
            governorate=gov,
            password_hash=password_hash,
            location=Location(lat=lat, lng=lng, timestamp=now),
            approved=True,
            online=online,
            registered_at=now - timedelta(days=days),
            last_seen=now - timedelta(minutes=index),
            **extra,
        ))
    return fleet


def seed_demo_fleet(store: VehicleStore, geofence: GeofenceValidator, now: datetime = None) -> int:
    """Load the demo fleet into an empty store. Returns the number of vehicles written."""
    if store.get_all():
        logger.info("[SEED] Store already has vehicles, demo fleet skipped")
        return 0

    fleet = []
    for vehicle in build_demo_fleet(now or datetime.utcnow()):
        if not geofence.contains(vehicle.location.lat, vehicle.location.lng):
            logger.warning(f"[SEED] {vehicle.id} lies outside the geofence, skipped")
            continue
        fleet.append(vehicle)

    store.replace_all(fleet)
    logger.info(f"[SEED] Demo fleet loaded: {len(fleet)} vehicles")
    return len(fleet)
