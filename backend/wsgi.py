# backend/wsgi.py
from lendtrack import create_app

app = create_app()
