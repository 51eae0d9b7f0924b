# backend/wsgi.py
# Entry point for "flask --app wsgi" and WSGI servers (gunicorn wsgi:app).
from riderapp import create_app

app = create_app()
