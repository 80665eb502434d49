from http import HTTPStatus


def create_cashier(client, headers, email='jane@example.com'):
    return client.post(
        '/users/',
        headers=headers,
        json={
            'name': 'Jane Cashier',
            'email': email,
            'role': 'cashier',
            'password': 'secret123',
        },
    )


def test_admin_creates_cashier(client, admin_headers):
    response = create_cashier(client, admin_headers)

    assert response.status_code == HTTPStatus.CREATED
    user = response.json()
    assert user['email'] == 'jane@example.com'
    assert 'password' not in user
    assert 'passwordHash' not in user


def test_created_cashier_can_sign_in(client, admin_headers):
    create_cashier(client, admin_headers)

    response = client.post(
        '/auth/token',
        data={'username': 'jane@example.com', 'password': 'secret123'},
    )

    assert response.status_code == HTTPStatus.OK


def test_duplicate_email_is_rejected(client, admin_headers, cashier):
    response = create_cashier(client, admin_headers, email=cashier['email'])

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json() == {'detail': 'Email already registered'}


def test_short_password_is_rejected(client, admin_headers):
    response = client.post(
        '/users/',
        headers=admin_headers,
        json={'name': 'X', 'email': 'x@example.com', 'password': '123'},
    )

    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_cashier_cannot_manage_users(client, cashier_headers):
    assert client.get(
        '/users/', headers=cashier_headers
    ).status_code == HTTPStatus.FORBIDDEN
    assert create_cashier(
        client, cashier_headers
    ).status_code == HTTPStatus.FORBIDDEN


def test_list_users(client, admin_headers):
    create_cashier(client, admin_headers)

    response = client.get('/users/', headers=admin_headers)

    assert [u['email'] for u in response.json()] == ['jane@example.com']


def test_delete_user(client, admin_headers):
    user = create_cashier(client, admin_headers).json()

    response = client.delete(f'/users/{user["id"]}', headers=admin_headers)

    assert response.status_code == HTTPStatus.OK
    assert client.get('/users/', headers=admin_headers).json() == []


def test_delete_unknown_user(client, admin_headers):
    response = client.delete('/users/missing', headers=admin_headers)

    assert response.status_code == HTTPStatus.NOT_FOUND


def test_admin_cannot_delete_self(client, admin, admin_headers):
    response = client.delete(f'/users/{admin["id"]}', headers=admin_headers)

    assert response.status_code == HTTPStatus.BAD_REQUEST


def test_cashier_summaries(client, admin_headers, cashier):
    response = client.get('/users/cashiers', headers=admin_headers)

    assert response.status_code == HTTPStatus.OK
    assert response.json() == [
        {
            'id': cashier['id'],
            'name': cashier['name'],
            'email': cashier['email'],
            'saleCount': 0,
            'totalSales': 0.0,
        }
    ]


def test_cashier_sales_history(client, admin_headers, cashier):
    response = client.get(
        f'/users/cashiers/{cashier["id"]}/sales', headers=admin_headers
    )

    body = response.json()
    assert response.status_code == HTTPStatus.OK
    assert body['cashier']['id'] == cashier['id']
    assert body['sales'] == []
    assert body['dailyTotals'] == []


def test_sales_history_for_unknown_cashier(client, admin_headers):
    response = client.get(
        '/users/cashiers/missing/sales', headers=admin_headers
    )

    assert response.status_code == HTTPStatus.NOT_FOUND
