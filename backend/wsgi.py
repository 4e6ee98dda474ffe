# backend/wsgi.py
# FLASK_APP=wsgi.py flask run  /  gunicorn wsgi:app
from milk_delivery import create_app

app = create_app()
