import os

from app import create_app
from extensions import store
from models import Admin

# Creates the four table files (header only) under DATA_DIR.
# REGISTRY_ADMIN_EMAIL / REGISTRY_ADMIN_PASSWORD seed the first administrator,
# since nothing else ever writes admins.csv.

app = create_app()

with app.app_context():
    print("DATA DIR:", store.data_dir)
    created = store.ensure_tables()
    print("TABLES CREATED:", ", ".join(created) or "none (all present)")

    email = os.environ.get("REGISTRY_ADMIN_EMAIL")
    password = os.environ.get("REGISTRY_ADMIN_PASSWORD")
    if email and password and not store.admins.all():
        store.admins.append(Admin(id=1, name="Administrator", email=email, password=password))
        print("ADMIN CREATED:", email)
