import os

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'change-me-in-production-cleardues'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'cleardues.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Pagination for expense listings
    EXPENSES_PER_PAGE = int(os.environ.get('EXPENSES_PER_PAGE', 20))

    # Group invite codes
    INVITE_CODE_LENGTH = int(os.environ.get('INVITE_CODE_LENGTH', 8))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
