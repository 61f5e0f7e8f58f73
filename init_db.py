#!/usr/bin/env python3
"""Create the CSV Sensei tables and seed the default feature toggles.

Pass --reset to drop every table first.
"""

import sys

from csv_sensei import create_app
from csv_sensei.extensions import db
from csv_sensei.models.models import FeatureToggle, UsageTracking


def init_database(reset: bool = False) -> bool:
    app = create_app()

    with app.app_context():
        try:
            if reset:
                db.drop_all()
                print("Dropped all tables")
            db.create_all()
            toggles = FeatureToggle.ensure_defaults("init_db")
            print(f"Tables: {db.inspect(db.engine).get_table_names()}")
            print(f"Feature toggles: {', '.join(f'{t.feature_name}={t.is_enabled}' for t in toggles)}")
            print(f"Usage records: {UsageTracking.query.count()}")
        except Exception as e:
            print(f"Error creating database: {e}")
            return False

    return True


if __name__ == "__main__":
    success = init_database(reset="--reset" in sys.argv[1:])
    sys.exit(0 if success else 1)
