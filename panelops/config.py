import os
from datetime import date
from dotenv import load_dotenv

load_dotenv()

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///panelops.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or SECRET_KEY
    JWT_ACCESS_TOKEN_EXPIRES = False  # Tokens don't expire (adjust as needed)
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Clock used for due dates, expiry checks and report ranges
    CLOCK = date.today

    DUE_SOON_DAYS = 5
    DASHBOARD_LOOKAHEAD_DAYS = 3
    DEFAULT_CUT_COMMISSION_PCT = 5
    DEFAULT_EXCHANGE_RATES = {'MXN': 17.5, 'COP': 4200}


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET_KEY = 'test-jwt-secret'
    LOG_LEVEL = 'WARNING'
    BCRYPT_LOG_ROUNDS = 4
