# backend/wsgi.py
from brandledger import create_app

app = create_app()
