"""
Seed script for staff users (admins and block supervisors).

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured store: python scripts/seed_db.py --apply
  - Custom file: python scripts/seed_db.py --file ./staff_seed.json --apply

Seed file format:
  {
    "users": {
      "<firebase uid>": {"email": "...", "role": "SUPERVISOR", "block_id": "B1"},
      "<firebase uid>": {"email": "...", "role": "ADMIN", "block_id": null}
    }
  }

NOTE: When applying to real Firestore, ensure FIREBASE_CREDENTIALS_PATH is set
and USE_MOCK_DB=false in `.env`.
"""

import argparse
import json
import os
from typing import Dict

from app.models.user import UserRole
from app.services.persistence import ReportStore, get_report_store


def load_seed(path: str) -> Dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_users(store: ReportStore, seed: Dict, apply: bool = False) -> int:
    written = 0
    for user_id, data in seed.get("users", {}).items():
        try:
            role = UserRole(data.get("role"))
        except ValueError:
            print(f"Skipping users/{user_id}: unsupported role {data.get('role')!r}")
            continue

        record = {"email": data["email"], "role": role.value, "block_id": data.get("block_id")}
        print(f"Preparing: users/{user_id} ({role.value}, block={record['block_id']})")
        if not apply:
            continue
        store.save_user(user_id, record)
        written += 1
        print(f"Wrote: users/{user_id}")
    return written


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", default="./staff_seed.json", help="Path to the seed JSON file")
    parser.add_argument("--apply", action="store_true", help="Write seed to the store instead of dry-run")
    args = parser.parse_args()

    seed_path = os.path.abspath(args.file)
    if not os.path.exists(seed_path):
        print(f"Seed file not found: {seed_path}")
        return

    try:
        seed = load_seed(seed_path)
    except json.JSONDecodeError as e:
        print(f"Seed file is invalid: {e}")
        return

    written = write_users(get_report_store(), seed, apply=args.apply)

    if args.apply:
        print(f"Seeding completed: {written} user(s) written.")
    else:
        print("Dry run complete. Re-run with --apply to write to the store.")


if __name__ == "__main__":
    main()
