# scripts/init_db.py
import sys
from pathlib import Path

# --- PATH FIXER ---
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.append(str(PROJECT_ROOT))

from reward_engine.db import create_db_and_tables, engine


def init():
    print("🔄 Initializing Database...")

    try:
        # This creates the tables defined in reward_engine.models
        create_db_and_tables()
        print(f"✅ Success: Database tables created at '{engine.url}'.")
    except Exception as e:
        print(f"❌ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    init()
