from src.api import tracking, analytics
