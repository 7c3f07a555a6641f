# src/careops/main.py
from src.careops.app import create_app

app = create_app()
