import os


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key')
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', 'jwt-secret-key')
    JWT_ACCESS_TOKEN_EXPIRES = 3600  # 1 hour
    JWT_REFRESH_TOKEN_EXPIRES = 2592000  # 30 days
    FLASK_ENV = os.environ.get('FLASK_ENV', 'development')

    if FLASK_ENV == 'development':
        DATABASE_URL = os.environ.get(
            'DEV_DATABASE_URL',
            os.environ.get('DATABASE_URL', 'sqlite:///stack.db'))
    else:
        DATABASE_URL = os.environ.get('PROD_DATABASE_URL', os.environ.get('DATABASE_URL'))

    GOOGLE_CLIENT_ID = os.environ.get('GOOGLE_CLIENT_ID')
    GOOGLE_CLIENT_SECRET = os.environ.get('GOOGLE_CLIENT_SECRET')
    LINKEDIN_CLIENT_ID = os.environ.get('LINKEDIN_CLIENT_ID')
    LINKEDIN_CLIENT_SECRET = os.environ.get('LINKEDIN_CLIENT_SECRET')
    PROVIDER_TIMEOUT = int(os.environ.get('PROVIDER_TIMEOUT', '10'))

    LEADERBOARD_LIMIT = int(os.environ.get('LEADERBOARD_LIMIT', '50'))
    RECENT_SCORES_LIMIT = 20
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    LOG_FILE = os.environ.get('LOG_FILE')

    if not DATABASE_URL:
        raise ValueError("DATABASE_URL environment variable is not set")
