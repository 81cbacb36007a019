# backend/wsgi.py
from chiccheckout import create_app

app = create_app()
