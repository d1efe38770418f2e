# backend/wsgi.py
from barflow import create_app

app = create_app()
