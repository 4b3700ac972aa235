# backend/wsgi.py
from tenpeso import create_app

app = create_app()
