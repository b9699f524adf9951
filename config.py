"""
Project: OrderFlow
Description:
Application settings. Values are read from the environment (and from a
local .env file when present) and loaded with app.config.from_object().
"""

import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "change-this")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///orderflow.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "eventlet")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    DEFAULT_ITEM_COLOR = "#6366f1"
    MAX_ITEM_QUANTITY = int(os.environ.get("MAX_ITEM_QUANTITY", "100"))
