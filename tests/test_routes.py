from tests.conftest import login


def _add_dinner(client, group_id, amount=90):
    response = client.post('/api/expenses', json={
        'group_id': group_id,
        'description': 'Dinner',
        'amount': amount,
        'split_type': 'equal',
    })
    assert response.status_code == 201
    return response.get_json()['data']['expense']


def test_register_and_me(client):
    response = client.post('/api/auth/register', json={
        'name': 'Dave', 'email': 'Dave@Example.com', 'password': 'hunter22',
    })
    assert response.status_code == 201

    me = client.get('/api/auth/me').get_json()
    assert me['data']['user']['email'] == 'dave@example.com'

    duplicate = client.post('/api/auth/register', json={
        'name': 'Dave', 'email': 'dave@example.com', 'password': 'hunter22',
    })
    assert duplicate.status_code == 409


def test_login_required(client):
    response = client.get('/api/settlements/dashboard')

    assert response.status_code == 401
    assert response.get_json()['success'] is False


def test_bad_login(client, users):
    response = client.post('/api/auth/login', json={
        'email': 'alice@example.com', 'password': 'wrong',
    })
    assert response.status_code == 401


def test_group_create_and_join(client, users):
    login(client, 'alice')
    created = client.post('/api/groups', json={'name': 'Flatmates'})
    assert created.status_code == 201
    code = created.get_json()['data']['group']['invite_code']

    client.post('/api/auth/logout')
    login(client, 'bob')
    joined = client.post('/api/groups/join', json={'invite_code': code})
    assert joined.status_code == 200

    group_id = joined.get_json()['data']['group']['id']
    members = client.get(f'/api/groups/{group_id}').get_json()['data']['group']['members']
    assert [m['name'] for m in members] == ['Alice', 'Bob']
    assert members[0]['role'] == 'admin'


def test_expense_and_balances(client, users, group_id):
    login(client, 'alice')
    expense = _add_dinner(client, group_id)

    assert [s['amount'] for s in expense['splits']] == [30.0, 30.0, 30.0]

    data = client.get(f'/api/settlements/balances/{group_id}').get_json()['data']
    balances = {b['user_id']: b['balance'] for b in data['member_balances']}
    assert balances == {users['alice']: 60.0, users['bob']: -30.0, users['carol']: -30.0}
    assert data['user_balance']['net_balance'] == 60.0
    assert data['user_balance']['owed_by'] == [
        {'user_id': users['bob'], 'name': 'Bob', 'amount': 30.0},
        {'user_id': users['carol'], 'name': 'Carol', 'amount': 30.0},
    ]
    assert data['user_balance']['owes'] == []


def test_breakdown_names_counterparties(client, users, group_id):
    login(client, 'alice')
    _add_dinner(client, group_id)

    client.post('/api/auth/logout')
    login(client, 'bob')
    data = client.get(f'/api/settlements/balances/{group_id}').get_json()['data']
    assert data['user_balance']['owes'] == [{'user_id': users['alice'], 'name': 'Alice', 'amount': 30.0}]

    dashboard = client.get('/api/settlements/dashboard').get_json()['data']
    assert dashboard['group_balances'][0]['owes'][0]['name'] == 'Alice'


def test_expense_validation_error(client, users, group_id):
    login(client, 'alice')
    response = client.post('/api/expenses', json={
        'group_id': group_id,
        'description': 'Rent',
        'amount': 100,
        'split_type': 'percentage',
        'splits': [{'user_id': users['alice'], 'percentage': 40}],
    })

    assert response.status_code == 400
    assert 'Percentages must add up to 100' in response.get_json()['message']


def test_non_member_is_forbidden(client, users, group_id):
    client.post('/api/auth/register', json={
        'name': 'Eve', 'email': 'eve@example.com', 'password': 'secret123',
    })

    response = client.get(f'/api/settlements/suggest/{group_id}')
    assert response.status_code == 403


def test_expense_update_and_delete(client, users, group_id):
    login(client, 'alice')
    expense = _add_dinner(client, group_id)

    updated = client.put(f'/api/expenses/{expense["id"]}', json={'notes': 'Thai', 'amount': 1})
    assert updated.status_code == 200
    assert updated.get_json()['data']['expense']['notes'] == 'Thai'
    assert updated.get_json()['data']['expense']['amount'] == 90.0

    client.post('/api/auth/logout')
    login(client, 'bob')
    assert client.delete(f'/api/expenses/{expense["id"]}').status_code == 403

    client.post('/api/auth/logout')
    login(client, 'alice')
    assert client.delete(f'/api/expenses/{expense["id"]}').status_code == 200
    assert client.get(f'/api/expenses/{expense["id"]}').status_code == 404

    listing = client.get(f'/api/expenses/group/{group_id}').get_json()['data']
    assert listing['expenses'] == []
    assert listing['pagination']['total'] == 0


def test_settle_up_flow(client, users, group_id):
    login(client, 'alice')
    _add_dinner(client, group_id)

    suggestions = client.get(f'/api/settlements/suggest/{group_id}').get_json()['data']
    assert suggestions['count'] == 2
    assert {(s['from_user_id'], s['to_user_id'], s['amount']) for s in suggestions['settlements']} == {
        (users['bob'], users['alice'], 30.0),
        (users['carol'], users['alice'], 30.0),
    }

    # Bob proposes and pays
    client.post('/api/auth/logout')
    login(client, 'bob')
    created = client.post('/api/settlements', json={
        'group_id': group_id, 'to_user_id': users['alice'], 'amount': 30,
    })
    assert created.status_code == 201
    settlement_id = created.get_json()['data']['settlement']['id']

    assert client.put(f'/api/settlements/{settlement_id}/confirm').status_code == 403
    paid = client.put(f'/api/settlements/{settlement_id}/pay', json={'payment_reference': 'UPI-1'})
    assert paid.get_json()['data']['settlement']['status'] == 'paid'

    # Not confirmed yet: balances unchanged
    data = client.get(f'/api/settlements/balances/{group_id}').get_json()['data']
    assert {b['user_id']: b['balance'] for b in data['member_balances']}[users['bob']] == -30.0

    # Alice confirms
    client.post('/api/auth/logout')
    login(client, 'alice')
    to_confirm = client.get('/api/settlements/my/to-confirm').get_json()['data']['settlements']
    assert [s['id'] for s in to_confirm] == [settlement_id]

    confirmed = client.put(f'/api/settlements/{settlement_id}/confirm')
    assert confirmed.get_json()['data']['settlement']['status'] == 'confirmed'

    rejected = client.put(f'/api/settlements/{settlement_id}/reject')
    assert rejected.status_code == 400
    assert 'confirmed' in rejected.get_json()['message']

    suggestions = client.get(f'/api/settlements/suggest/{group_id}').get_json()['data']['settlements']
    assert suggestions == [{'from_user_id': users['carol'], 'to_user_id': users['alice'], 'amount': 30.0}]

    dashboard = client.get('/api/settlements/dashboard').get_json()['data']
    assert dashboard['overview'] == {'you_owe': 0.0, 'you_are_owed': 30.0, 'net_balance': 30.0}

    confirmed_list = client.get(f'/api/settlements/group/{group_id}?status=confirmed').get_json()
    assert [s['id'] for s in confirmed_list['data']['settlements']] == [settlement_id]


def test_cannot_settle_with_yourself(client, users, group_id):
    login(client, 'bob')
    response = client.post('/api/settlements', json={
        'group_id': group_id, 'to_user_id': users['bob'], 'amount': 10,
    })

    assert response.status_code == 400
