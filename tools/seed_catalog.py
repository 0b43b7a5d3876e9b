from __future__ import annotations

import json
import sys
from pathlib import Path

from storechat.db import Base, SessionLocal, engine
from storechat.inventory import SqlInventory

# Catalogs live here: data/<retailer_id>/catalog.json
DATA_DIR = Path(__file__).resolve().parents[1] / "data"


def main() -> None:
    only = {a.strip().lower() for a in sys.argv[1:]}
    paths = sorted(DATA_DIR.rglob("catalog.json"))
    if not paths:
        raise SystemExit(f"No catalog.json files found under {DATA_DIR}")

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    seeded = 0
    try:
        inventory = SqlInventory(db)
        for p in paths:
            data = json.loads(p.read_text(encoding="utf-8"))
            retailer_id = str(data.get("retailer_id") or p.parent.name).strip().lower()
            if only and retailer_id not in only:
                continue
            n = inventory.upsert_items(retailer_id, data.get("items") or [])
            print(f"OK  {retailer_id}  {n} items  ({p})")
            seeded += 1
    finally:
        db.close()

    print(f"\nDone. Seeded {seeded} catalog(s).")


if __name__ == "__main__":
    main()
