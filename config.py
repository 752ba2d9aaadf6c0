# config.py
# Game constants and deployment knobs. Environment variables override the deploy ones.

import os
from datetime import date

# --- DEPLOYMENT ---
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "3000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
TICK_INTERVAL_MS = int(os.environ.get("TICK_INTERVAL_MS", "2000"))
ADMIN_USER = os.environ.get("ADMIN_USER", "admin")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "123")
PUBLIC_DIR = os.environ.get("PUBLIC_DIR", os.path.join(os.path.dirname(__file__), "public"))
# Kept outside PUBLIC_DIR so the static mount can never serve it ungated
ADMIN_PAGE = os.environ.get("ADMIN_PAGE", os.path.join(os.path.dirname(__file__), "private", "admin.html"))

# --- MARKET (startup narrative: loss-making company before its IPO) ---
INITIAL_PRICE = 50.00
INITIAL_INTRINSIC_VALUE = 50.00
INITIAL_VOLATILITY = 0.05
INITIAL_GRAVITY = 0.02
INITIAL_EPS = -1.50
INITIAL_REVENUE = "5M"
INITIAL_DATE = date(2024, 1, 1)
SHARES_OUTSTANDING = 10_000_000
SHARES_LABEL = "10M"
PRICE_FLOOR = 0.01
# Largest fair-value shift a single news or earnings command may apply
MAX_IMPACT = 1_000_000.0

# --- VOTING / HISTORY ---
VOTE_COOLDOWN_S = 0.5
COOLDOWN_CAPACITY = 10_000
LIVE_HISTORY_SIZE = 150
# A viewer that cannot take a message this fast is dropped
SEND_TIMEOUT_S = float(os.environ.get("SEND_TIMEOUT_S", "1.0"))

# --- NEWS STRINGS ---
NEWS_CLOSED = "MARKET CLOSED - Awaiting IPO"
NEWS_OPEN = "MARKET OPEN"
NEWS_PAUSED = "MARKET PAUSED"
NEWS_RESET = "IPO LAUNCHED - FAIR VALUE: 50.00"
NEWS_SESSION_ENDED = "SESSION ENDED"
EARNINGS_PREFIX = "📊 "
