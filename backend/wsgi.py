# backend/wsgi.py
from linesync import create_app

app = create_app()
