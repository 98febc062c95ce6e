import random

import pytest

from cleardues import create_app
from cleardues.extensions import db
from cleardues.models import User
from cleardues.services.group_service import create_group
from config import TestConfig


@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app):
    """Ids of alice, bob and carol, password 'secret123'."""
    with app.app_context():
        created = {}
        for name in ('alice', 'bob', 'carol'):
            user = User(name=name.title(), email=f'{name}@example.com')
            user.set_password('secret123')
            db.session.add(user)
            created[name] = user
        db.session.commit()
        return {name: user.id for name, user in created.items()}


@pytest.fixture
def group_id(app, users):
    """Group of alice (admin), bob and carol."""
    with app.app_context():
        group = create_group(
            'Trip',
            created_by=users['alice'],
            member_ids=[users['bob'], users['carol']],
            rng=random.Random(42),
        )
        return group.id


def login(client, name):
    response = client.post('/api/auth/login', json={
        'email': f'{name}@example.com',
        'password': 'secret123',
    })
    assert response.status_code == 200
    return response
