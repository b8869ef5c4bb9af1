# backend/rosterdesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/rosterdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///rosterdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # WooCommerce REST API (order feed)
    WC_URL = os.environ.get("WC_URL", "")
    WC_CONSUMER_KEY = os.environ.get("WC_CONSUMER_KEY", "")
    WC_CONSUMER_SECRET = os.environ.get("WC_CONSUMER_SECRET", "")

    FEED_PAGE_SIZE = int(os.environ.get("FEED_PAGE_SIZE", "100"))
    FEED_TIMEOUT_SECONDS = float(os.environ.get("FEED_TIMEOUT_SECONDS", "30"))
    # Upper bound on pages walked per sync; a feed that never reports its
    # last page fails the run instead of looping forever.
    FEED_MAX_PAGES = int(os.environ.get("FEED_MAX_PAGES", "500"))

    ORDERS_PER_PAGE = 100
